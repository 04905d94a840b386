"""Model Context Protocol binding for the tool handler."""

from __future__ import annotations

import logging
from typing import Any, Optional

import anyio.to_thread
import mcp.types as types
from mcp.server.lowlevel import Server

from src.server.tools import ToolHandler

logger = logging.getLogger(__name__)

SERVER_NAME = "ydrag"
SERVER_VERSION = "1.0.0"


def build_mcp_server(handler: ToolHandler) -> Server:
    """Create an MCP server exposing every tool of ``handler``.

    Input validation is left to the handler so that bad arguments come back
    as structured tool errors rather than protocol errors. Engine calls run
    on worker threads that finish even if the request is cancelled.
    """
    server: Server = Server(SERVER_NAME, version=SERVER_VERSION)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(
                name=spec.name,
                description=spec.description,
                inputSchema=spec.input_schema,
                outputSchema=spec.output_schema,
            )
            for spec in handler.tools
        ]

    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: Optional[dict[str, Any]]) -> types.CallToolResult:
        response = await anyio.to_thread.run_sync(handler.handle, name, arguments)
        if response.is_error:
            logger.info("Tool %s returned an error: %s", name, response.text)
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=response.text)],
            structuredContent=response.structured,
            isError=response.is_error,
        )

    return server
