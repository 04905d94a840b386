"""MCP tool server: tool handler, protocol binding and transports."""

from src.server.tools import ToolHandler, ToolResponse

__all__ = ["ToolHandler", "ToolResponse"]
