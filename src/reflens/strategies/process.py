"""Subprocess boundary for external search tools.

Everything that spawns a child process or enforces its timeout lives here so
the strategies and their parsers can be tested without real tools.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from reflens.errors import ToolUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class ToolOutput:
    """Captured result of one tool invocation.

    ``returncode`` is None when the process was killed on timeout.
    """

    returncode: Optional[int]
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False


def locate_executable(candidates: Iterable[str]) -> Optional[str]:
    """Return the first candidate that resolves to an executable.

    Candidates containing a path separator are checked as-is, bare names are
    looked up on PATH.
    """
    for candidate in candidates:
        if os.sep in candidate or (os.altsep and os.altsep in candidate):
            if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
                return candidate
            continue
        resolved = shutil.which(candidate)
        if resolved:
            return resolved
    return None


async def run_tool(argv: Sequence[str], timeout: float) -> ToolOutput:
    """Run argv to completion, killing it after timeout seconds.

    Raises:
        ToolUnavailableError: If the executable cannot be spawned.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as exc:
        raise ToolUnavailableError(argv[0], str(exc)) from exc

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %.1fs, killing process", argv[0], timeout)
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()
        return ToolOutput(returncode=None, timed_out=True)

    return ToolOutput(
        returncode=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
