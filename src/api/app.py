"""FastAPI application hosting the network tool server transports.

Serves a health endpoint next to the MCP endpoints of one transport:
- sse: ``GET /sse`` opens the event stream, ``POST /messages/`` carries requests
- streamable-http: ``/mcp`` handles request/response streams
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from mcp.server.lowlevel import Server
from mcp.server.sse import SseServerTransport
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from pydantic import BaseModel
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from src.rag.config import TransportKind
from src.server.mcp_server import SERVER_VERSION, build_mcp_server
from src.server.tools import ToolHandler

SSE_PATH = "/sse"
MESSAGES_PATH = "/messages/"
STREAMABLE_HTTP_PATH = "/mcp"


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    transport: str
    document_count: int
    version: str = SERVER_VERSION


class _StreamableHTTPEndpoint:
    """ASGI endpoint forwarding requests to the session manager."""

    def __init__(self, session_manager: StreamableHTTPSessionManager) -> None:
        self._session_manager = session_manager

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self._session_manager.handle_request(scope, receive, send)


def _mount_sse(app: FastAPI, mcp_server: Server) -> None:
    sse = SseServerTransport(MESSAGES_PATH)

    async def handle_sse(request: Request) -> Response:
        async with sse.connect_sse(request.scope, request.receive, request._send) as streams:
            await mcp_server.run(streams[0], streams[1], mcp_server.create_initialization_options())
        return Response()

    app.router.routes.append(Route(SSE_PATH, endpoint=handle_sse, methods=["GET"]))
    app.mount(MESSAGES_PATH, app=sse.handle_post_message)


def create_app(handler: ToolHandler, transport: TransportKind) -> FastAPI:
    """Create the HTTP application for a network transport.

    Args:
        handler: Tool handler shared by every connection.
        transport: SSE or STREAMABLE_HTTP.
    """
    if transport == TransportKind.STDIO:
        raise ValueError("the stdio transport is not served over HTTP")

    mcp_server = build_mcp_server(handler)
    session_manager = None
    if transport == TransportKind.STREAMABLE_HTTP:
        session_manager = StreamableHTTPSessionManager(
            app=mcp_server, event_store=None, json_response=False, stateless=False
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        if session_manager is None:
            yield
            return
        async with session_manager.run():
            yield

    app = FastAPI(
        title="ydrag",
        description="Semantic document retrieval tool server",
        version=SERVER_VERSION,
        lifespan=lifespan,
    )

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            transport=transport.value,
            document_count=handler.engine.document_count,
        )

    if session_manager is not None:
        app.router.routes.append(
            Route(STREAMABLE_HTTP_PATH, endpoint=_StreamableHTTPEndpoint(session_manager))
        )
    else:
        _mount_sse(app, mcp_server)

    return app
