"""Quart application exposing the reference search over HTTP."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from quart import Quart, Response, request

from reflens.errors import InvalidSearchRequest
from reflens.search.orchestrator import SearchOrchestrator

logger = logging.getLogger(__name__)

INDEX_HTML_PATH = Path(__file__).parent / "static" / "index.html"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


class SearchRequest(BaseModel):
    """Body of ``POST /find-references``."""

    model_config = ConfigDict(populate_by_name=True)

    word: Optional[str] = None
    directory: Optional[str] = None
    search_strategy: Optional[str] = Field(default=None, alias="searchStrategy")


def _json_response(payload: Dict[str, Any], status: int) -> Response:
    return Response(json.dumps(payload), status=status, mimetype="application/json")


def create_app(
    orchestrator: Optional[SearchOrchestrator] = None,
    index_path: Path = INDEX_HTML_PATH,
) -> Quart:
    """Build the HTTP application.

    Args:
        orchestrator: Search orchestrator to serve (default: a fresh one)
        index_path: HTML page served at ``/`` and ``/index.html``

    Returns:
        Configured Quart app
    """
    app = Quart(__name__, static_folder=None)
    search_orchestrator = orchestrator or SearchOrchestrator()

    @app.before_request
    async def answer_preflight() -> Optional[Response]:
        # CORS preflight is accepted on every path
        if request.method == "OPTIONS":
            return Response("", status=200)
        return None

    @app.after_request
    async def add_cors_headers(response: Response) -> Response:
        for header, value in CORS_HEADERS.items():
            response.headers[header] = value
        return response

    @app.route("/", methods=["GET"])
    @app.route("/index.html", methods=["GET"])
    async def index() -> Response:
        try:
            content = await asyncio.to_thread(index_path.read_text, encoding="utf-8")
        except OSError as exc:
            logger.error("Error serving index.html: %s", exc)
            return Response("Error loading web interface", status=500, mimetype="text/plain")
        return Response(content, status=200, mimetype="text/html")

    @app.route("/find-references", methods=["POST"])
    async def find_references() -> Response:
        payload = await request.get_json(force=True, silent=True)
        if not isinstance(payload, dict):
            return _json_response(
                {"error": "Invalid request body", "details": "Expected a JSON object"}, 400
            )

        try:
            search_request = SearchRequest.model_validate(payload)
        except ValidationError as exc:
            return _json_response(
                {
                    "error": "Invalid request body",
                    "details": {
                        ".".join(str(part) for part in error["loc"]): error["msg"]
                        for error in exc.errors()
                    },
                },
                400,
            )

        logger.info(
            "Received search request: word=%r directory=%r strategy=%r",
            search_request.word,
            search_request.directory,
            search_request.search_strategy,
        )

        try:
            result = await search_orchestrator.search(
                search_request.word,
                search_request.directory,
                search_request.search_strategy,
            )
        except InvalidSearchRequest as exc:
            logger.info("Rejected search request: %s", exc)
            return _json_response(exc.to_dict(), 400)
        except Exception as exc:
            logger.exception("Error processing request")
            return _json_response(
                {"error": "Internal server error", "details": str(exc) or type(exc).__name__},
                500,
            )

        return Response(result.to_json(), status=200, mimetype="application/json")

    @app.errorhandler(404)
    async def not_found(error: Exception) -> Response:
        return _json_response({"error": "Not found"}, 404)

    @app.errorhandler(405)
    async def method_not_allowed(error: Exception) -> Response:
        return _json_response({"error": "Not found"}, 404)

    return app
