"""Transport bindings for the tool server.

Every transport follows the same lifecycle:

    STOPPED -> STARTING -> RUNNING -> DRAINING -> STOPPED

``serve`` returns once the shutdown event has fired and in-flight work has
finished (or the grace period ran out), or when a stdio peer disconnects.
"""

from __future__ import annotations

import contextlib
import io
import logging
import sys
import threading
from abc import ABC, abstractmethod
from concurrent.futures import CancelledError
from enum import Enum
from typing import Any, Iterator, Optional, TextIO

import anyio
import anyio.from_thread
import anyio.to_thread
import uvicorn
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp import types
from mcp.shared.message import SessionMessage
from pydantic import ValidationError

from src.api.app import create_app
from src.rag.config import Settings, TransportKind
from src.rag.errors import ServerError
from src.server.mcp_server import build_mcp_server
from src.server.tools import ToolHandler

logger = logging.getLogger(__name__)

_STARTUP_POLL_SECONDS = 0.05


class TransportState(str, Enum):
    """Lifecycle states of a transport."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    DRAINING = "draining"


class Transport(ABC):
    """A binding of the tool handler to one wire protocol."""

    kind: TransportKind

    def __init__(self) -> None:
        self._state = TransportState.STOPPED

    @property
    def state(self) -> TransportState:
        return self._state

    def _set_state(self, state: TransportState) -> None:
        if state == self._state:
            return
        logger.info("%s transport: %s -> %s", self.kind.value, self._state.value, state.value)
        self._state = state

    @abstractmethod
    async def serve(self, shutdown: anyio.Event) -> None:
        """Serve until ``shutdown`` is set, then drain and return."""
        ...


class StdioTransport(Transport):
    """Single peer over the process's stdin and stdout.

    Lines from stdin are read on a daemon thread owned by the transport and
    handed to the session through a blocking portal. A read that is still
    blocked at shutdown is abandoned, so an idle peer cannot hold the
    server open.
    """

    kind = TransportKind.STDIO

    def __init__(
        self,
        handler: ToolHandler,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ) -> None:
        super().__init__()
        self._mcp_server = build_mcp_server(handler)
        self._stdin = stdin
        self._stdout = stdout

    async def serve(self, shutdown: anyio.Event) -> None:
        self._set_state(TransportState.STARTING)
        stdin = self._stdin or io.TextIOWrapper(sys.stdin.buffer, encoding="utf-8")
        stdout = self._stdout or io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8")

        read_send, read_recv = anyio.create_memory_object_stream(0)
        write_send, write_recv = anyio.create_memory_object_stream(0)
        try:
            async with anyio.from_thread.BlockingPortal() as portal:
                try:
                    async with anyio.create_task_group() as tg:

                        async def run_session() -> None:
                            await self._mcp_server.run(
                                read_recv,
                                write_send,
                                self._mcp_server.create_initialization_options(),
                            )
                            logger.info("stdio peer disconnected")
                            tg.cancel_scope.cancel()

                        threading.Thread(
                            target=self._read_lines,
                            args=(stdin, portal, read_send),
                            name="ydrag-stdin",
                            daemon=True,
                        ).start()
                        tg.start_soon(self._write_lines, stdout, write_recv)
                        tg.start_soon(run_session)
                        self._set_state(TransportState.RUNNING)

                        await shutdown.wait()
                        self._set_state(TransportState.DRAINING)
                        tg.cancel_scope.cancel()
                finally:
                    # a reader blocked in portal.call sees a closed stream
                    for stream in (read_send, read_recv, write_send, write_recv):
                        stream.close()
                    await portal.stop(cancel_remaining=True)
        finally:
            self._set_state(TransportState.STOPPED)

    @staticmethod
    def _read_lines(
        stdin: TextIO,
        portal: anyio.from_thread.BlockingPortal,
        send_stream: MemoryObjectSendStream[Any],
    ) -> None:
        """Thread body: parse each stdin line and pass it to the session."""
        try:
            for line in iter(stdin.readline, ""):
                if not line.strip():
                    continue
                try:
                    item: Any = SessionMessage(types.JSONRPCMessage.model_validate_json(line))
                except ValidationError as e:
                    item = e
                portal.call(send_stream.send, item)
            portal.call(send_stream.aclose)
        except (RuntimeError, CancelledError, anyio.BrokenResourceError, anyio.ClosedResourceError):
            # the transport stopped while this thread was blocked
            logger.debug("stdio reader released after shutdown")

    async def _write_lines(
        self, stdout: TextIO, receive_stream: MemoryObjectReceiveStream[Any]
    ) -> None:
        async with receive_stream:
            async for session_message in receive_stream:
                payload = session_message.message.model_dump_json(by_alias=True, exclude_none=True)
                await anyio.to_thread.run_sync(_write_line, stdout, payload)


def _write_line(stdout: TextIO, payload: str) -> None:
    stdout.write(payload + "\n")
    stdout.flush()


class _Server(uvicorn.Server):
    """uvicorn server that leaves signal handling to the caller."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


class HTTPTransport(Transport):
    """Network transport serving the FastAPI app through uvicorn.

    On shutdown uvicorn stops accepting connections and gives open ones
    ``shutdown_grace_seconds`` to finish before cancelling them.
    """

    def __init__(self, handler: ToolHandler, settings: Settings) -> None:
        super().__init__()
        self._app = create_app(handler, self.kind)
        self._host = settings.server_host
        self._port = settings.server_port
        self._grace = settings.shutdown_grace_seconds
        self._server: Optional[_Server] = None

    @property
    def bound_port(self) -> Optional[int]:
        """Port actually listened on; differs from the configured one for port 0."""
        if self._server is None or not self._server.started:
            return None
        for server in self._server.servers:
            for sock in server.sockets:
                return int(sock.getsockname()[1])
        return None

    async def serve(self, shutdown: anyio.Event) -> None:
        self._set_state(TransportState.STARTING)
        config = uvicorn.Config(
            self._app,
            host=self._host,
            port=self._port,
            log_config=None,
            timeout_graceful_shutdown=self._grace,
        )
        server = _Server(config)
        self._server = server
        failed: Optional[BaseException] = None
        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._watch, server, shutdown)
                try:
                    await server.serve()
                except SystemExit as e:
                    # uvicorn exits the process when it cannot bind
                    failed = e
                tg.cancel_scope.cancel()
        finally:
            self._set_state(TransportState.STOPPED)

        if failed is not None or (not server.started and not shutdown.is_set()):
            raise ServerError(
                f"unable to start {self.kind.value} transport on {self._host}:{self._port}"
            )

    async def _watch(self, server: _Server, shutdown: anyio.Event) -> None:
        while not server.started and not shutdown.is_set():
            await anyio.sleep(_STARTUP_POLL_SECONDS)
        if server.started:
            self._set_state(TransportState.RUNNING)
            logger.info(
                "Serving %s transport on http://%s:%s", self.kind.value, self._host, self.bound_port
            )
        await shutdown.wait()
        self._set_state(TransportState.DRAINING)
        server.should_exit = True


class SSETransport(HTTPTransport):
    """Push-stream transport: ``GET /sse`` plus ``POST /messages/``."""

    kind = TransportKind.SSE


class StreamableHTTPTransport(HTTPTransport):
    """Request/response streams on ``/mcp``."""

    kind = TransportKind.STREAMABLE_HTTP


def create_transport(kind: TransportKind, handler: ToolHandler, settings: Settings) -> Transport:
    """Factory function to create the transport for ``kind``."""
    if kind == TransportKind.STDIO:
        return StdioTransport(handler)
    if kind == TransportKind.SSE:
        return SSETransport(handler, settings)
    if kind == TransportKind.STREAMABLE_HTTP:
        return StreamableHTTPTransport(handler, settings)
    raise ValueError(f"unsupported transport: {kind!r}")
