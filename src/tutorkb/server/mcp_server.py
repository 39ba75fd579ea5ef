"""tutorkb MCP Server -- stdio-based MCP server exposing the knowledge base."""

import asyncio
import atexit
import logging
import os
import sys
import time

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from tutorkb.server.handlers import HANDLERS
from tutorkb.server.tool_schemas import TOOL_SCHEMAS

# Idle watchdog: exit after this many seconds without a tool call.
# Override with TUTORKB_IDLE_TIMEOUT env var. 0 = disabled.
_IDLE_TIMEOUT = int(os.environ.get("TUTORKB_IDLE_TIMEOUT", "3600"))
_last_activity: float = time.monotonic()


def _close_on_exit():
    """Close the SQLite store when the MCP server process exits."""
    from tutorkb.bridge import _close_store

    _close_store()


atexit.register(_close_on_exit)

logger = logging.getLogger("tutorkb.server")

server = Server("tutorkb")


@server.list_tools()
async def list_tools() -> list[Tool]:
    """Return all knowledge base tools."""
    return [
        Tool(
            name=schema["name"],
            description=schema["description"],
            inputSchema=schema["inputSchema"],
        )
        for schema in TOOL_SCHEMAS
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Dispatch tool call to the appropriate handler."""
    global _last_activity
    _last_activity = time.monotonic()

    handler = HANDLERS.get(name)
    if not handler:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]

    try:
        result = await handler(arguments or {})
        # Extract text from MCP response format
        content_list = result.get("content", [{}])
        text = content_list[0].get("text", str(result)) if content_list else str(result)
        return [TextContent(type="text", text=text)]
    except Exception as e:
        logger.error("Tool %s failed: %s", name, e)
        return [TextContent(type="text", text=f"Error in {name}: {e}")]


async def _idle_watchdog():
    """Exit the process if no tool call has been received within the timeout."""
    while True:
        await asyncio.sleep(30)
        idle = time.monotonic() - _last_activity
        if idle >= _IDLE_TIMEOUT:
            logger.warning("Idle for %.0fs (limit %ds), shutting down.", idle, _IDLE_TIMEOUT)
            _close_on_exit()
            os._exit(0)


async def main():
    """Entry point for the tutorkb MCP server."""
    logging.basicConfig(level=os.environ.get("TUTORKB_LOG_LEVEL", "WARNING").upper(), stream=sys.stderr)
    logger.info("Starting tutorkb MCP server...")

    # IMPORTANT: Save reference -- unref'd tasks get silently GC'd by asyncio.
    if _IDLE_TIMEOUT > 0:
        _watchdog_task = asyncio.create_task(_idle_watchdog())  # noqa: F841

    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


if __name__ == "__main__":
    asyncio.run(main())
