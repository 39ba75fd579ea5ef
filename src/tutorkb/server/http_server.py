"""Serve the tutorkb MCP tools over Streamable HTTP, next to a health probe and a server card."""

import contextlib
import os
from collections.abc import AsyncIterator

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route
from starlette.types import Receive, Scope, Send

from mcp.server.streamable_http_manager import StreamableHTTPSessionManager

SERVER_NAME = "tutorkb"
API_KEY_HEADER = "x-api-key"
API_KEY_PARAM = "api_key"


def api_key_from_env() -> str | None:
    """API key from TUTORKB_HTTP_API_KEY; None disables auth."""
    return os.environ.get("TUTORKB_HTTP_API_KEY") or None


def _authorized(request: Request, api_key: str | None) -> bool:
    if not api_key:
        return True
    provided = request.headers.get(API_KEY_HEADER) or request.query_params.get(API_KEY_PARAM)
    return provided == api_key


def server_card() -> dict:
    """Discovery document served at /.well-known/mcp.json."""
    from tutorkb import __version__
    from tutorkb.server.tool_schemas import TOOL_SCHEMAS

    tools = [schema["name"] for schema in TOOL_SCHEMAS]
    return {
        "name": SERVER_NAME,
        "version": __version__,
        "description": "Queryable knowledge base for a language tutoring assistant",
        "transports": [
            {"type": "streamable-http", "url": "/mcp"},
            {"type": "stdio", "command": "tutorkb serve"},
        ],
        "tools": tools,
        "tools_count": len(tools),
    }


def create_http_app(server, api_key: str | None = None) -> Starlette:
    """Build the ASGI app for ``server``; requests to /mcp need ``api_key`` when one is set."""
    sessions = StreamableHTTPSessionManager(app=server, json_response=True, stateless=True)

    async def mcp_endpoint(scope: Scope, receive: Receive, send: Send) -> None:
        if not _authorized(Request(scope, receive), api_key):
            await JSONResponse({"error": "Unauthorized"}, status_code=401)(scope, receive, send)
            return
        await sessions.handle_request(scope, receive, send)

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "server": SERVER_NAME})

    async def card(request: Request) -> JSONResponse:
        return JSONResponse(server_card())

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with sessions.run():
            yield

    return Starlette(
        routes=[
            Mount("/mcp", app=mcp_endpoint),
            Route("/health", endpoint=health),
            Route("/.well-known/mcp.json", endpoint=card),
        ],
        lifespan=lifespan,
    )


async def run_http(host: str, port: int, api_key: str | None) -> None:
    import uvicorn

    from tutorkb.server.mcp_server import server

    config = uvicorn.Config(create_http_app(server, api_key=api_key), host=host, port=port, log_level="info")
    await uvicorn.Server(config).serve()
