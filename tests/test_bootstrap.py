"""Tests for port discovery, serving and tool probing."""

import asyncio
import errno
import os
import socket

import pytest

from reflens.errors import NoAvailablePortError, ToolUnavailableError
from reflens.server import bootstrap
from reflens.server.bootstrap import find_available_port, probe_search_tools, serve
from reflens.strategies.process import ToolOutput


@pytest.fixture
def busy_port():
    """A localhost port held by a listening socket for the test's duration."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    yield sock.getsockname()[1]
    sock.close()


class TestFindAvailablePort:
    """Tests for find_available_port."""

    def test_skips_taken_port(self, busy_port):
        """Test an occupied start port is skipped."""
        port = find_available_port(busy_port, busy_port + 50)
        assert busy_port < port < busy_port + 50

    def test_exhausted_range(self, busy_port):
        """Test a range with no free port raises NoAvailablePortError."""
        with pytest.raises(NoAvailablePortError) as exc_info:
            find_available_port(busy_port, busy_port + 1)

        assert str(exc_info.value) == (
            f"No available ports found between {busy_port} and {busy_port + 1}"
        )


class TestServe:
    """Tests for serve with a stubbed Hypercorn."""

    @pytest.fixture
    def served(self, monkeypatch):
        """Replace Hypercorn with a stub recording its bind configuration."""
        calls = []

        async def fake_hypercorn_serve(app, hypercorn_config, shutdown_trigger=None):
            calls.append(hypercorn_config)
            for bind in hypercorn_config.bind:
                os.close(int(bind[len("fd://"):]))

        monkeypatch.setattr(bootstrap, "hypercorn_serve", fake_hypercorn_serve)
        return calls

    @pytest.mark.asyncio
    async def test_retries_when_port_is_taken(self, config, busy_port, served, monkeypatch):
        """Test address-in-use at bind time restarts discovery."""
        free = find_available_port(busy_port + 1, busy_port + 50)
        discovered = iter([busy_port, free])
        monkeypatch.setattr(bootstrap, "find_available_port", lambda *args: next(discovered))
        listening = []

        port = await serve(object(), config, asyncio.Event(), on_listening=listening.append)

        assert port == free
        assert listening == [free]
        assert len(served) == 1
        assert served[0].graceful_timeout == config.graceful_timeout_s
        assert served[0].bind[0].startswith("fd://")

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, config, busy_port, served, monkeypatch):
        """Test repeated address-in-use ends with NoAvailablePortError."""
        config.max_bind_attempts = 3
        attempts = []

        def always_busy(*args):
            attempts.append(args)
            return busy_port

        monkeypatch.setattr(bootstrap, "find_available_port", always_busy)

        with pytest.raises(NoAvailablePortError):
            await serve(object(), config, asyncio.Event())

        assert len(attempts) == 3
        assert served == []

    @pytest.mark.asyncio
    async def test_other_bind_errors_propagate(self, config, served, monkeypatch):
        """Test bind failures other than address-in-use are not retried."""
        def denied(host, port):
            raise OSError(errno.EACCES, "Permission denied")

        monkeypatch.setattr(bootstrap, "_bind_listener", denied)

        with pytest.raises(OSError) as exc_info:
            await serve(object(), config, asyncio.Event())

        assert exc_info.value.errno == errno.EACCES
        assert served == []


class TestProbeSearchTools:
    """Tests for probe_search_tools."""

    @pytest.mark.asyncio
    async def test_reports_first_responding_ripgrep(self, config, monkeypatch):
        """Test ripgrep candidates are tried in order and grep is checked separately."""
        config.ripgrep_paths = ["/nowhere/rg", "rg"]
        config.grep_path = "grep"

        async def fake_run_tool(argv, timeout):
            if argv[0] == "/nowhere/rg":
                raise ToolUnavailableError(argv[0])
            if argv[0] == "rg":
                return ToolOutput(0, "ripgrep 14.0.0")
            return ToolOutput(2, "", "unknown option")

        monkeypatch.setattr(bootstrap, "run_tool", fake_run_tool)

        tools = await probe_search_tools(config)

        assert tools.ripgrep is True
        assert tools.ripgrep_path == "rg"
        assert tools.grep is False

    @pytest.mark.asyncio
    async def test_nothing_available(self, config, monkeypatch):
        """Test missing tools are reported as unavailable."""
        async def fake_run_tool(argv, timeout):
            raise ToolUnavailableError(argv[0])

        monkeypatch.setattr(bootstrap, "run_tool", fake_run_tool)

        tools = await probe_search_tools(config)

        assert (tools.ripgrep, tools.grep, tools.ripgrep_path) == (False, False, None)
