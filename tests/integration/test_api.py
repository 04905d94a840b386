"""Integration tests for the FastAPI application hosting the network transports."""

import pytest
from fastapi.testclient import TestClient

from src.api.app import create_app
from src.rag.config import TransportKind
from src.server.tools import ToolHandler


class TestHealthEndpoint:
    @pytest.mark.parametrize("transport", [TransportKind.SSE, TransportKind.STREAMABLE_HTTP])
    def test_health(self, handler: ToolHandler, transport: TransportKind) -> None:
        handler.handle("add_document", {"id": "doc1", "content": "hello"})
        with TestClient(create_app(handler, transport)) as client:
            response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["transport"] == transport.value
        assert data["document_count"] == 1
        assert data["version"] == "1.0.0"


class TestRoutes:
    def test_stdio_not_served_over_http(self, handler: ToolHandler) -> None:
        with pytest.raises(ValueError):
            create_app(handler, TransportKind.STDIO)

    def test_streamable_http_requires_stream_accept(self, handler: ToolHandler) -> None:
        with TestClient(create_app(handler, TransportKind.STREAMABLE_HTTP)) as client:
            response = client.post(
                "/mcp",
                json={"jsonrpc": "2.0", "id": 1, "method": "tools/list"},
                headers={"Accept": "application/json"},
            )
        assert response.status_code == 406

    def test_sse_messages_need_session(self, handler: ToolHandler) -> None:
        with TestClient(create_app(handler, TransportKind.SSE)) as client:
            response = client.post("/messages/", json={})
        assert response.status_code == 400

    def test_sse_app_has_no_mcp_route(self, handler: ToolHandler) -> None:
        with TestClient(create_app(handler, TransportKind.SSE)) as client:
            assert client.post("/mcp", json={}).status_code == 404
