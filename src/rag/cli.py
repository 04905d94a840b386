"""CLI interface for ydrag.

Provides command-line access to the knowledge base:
- add: Store a document from arguments or a file (text or PDF)
- query: Find the documents most similar to a text
- list: Show every stored document
- delete: Remove a document
- serve: Run the MCP tool server over stdio, sse or streamable-http

Commands run through the same tool handler as the server, so their output
matches what tool clients see.
"""

from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from dataclasses import dataclass
from typing import Callable, Optional

import anyio

from src.rag.config import DEFAULT_CONFIG_FILE, Settings, TransportKind, load_settings
from src.rag.engine import DEFAULT_TOP_K, create_engine
from src.rag.errors import RAGError, ServerError
from src.rag.logging_setup import setup_logging
from src.rag.readers import read_document_text
from src.server.tools import ToolHandler, ToolResponse
from src.server.transports import Transport, create_transport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Command:
    """A CLI subcommand: its arguments and the function that runs it."""

    name: str
    help: str
    configure: Callable[[argparse.ArgumentParser], None]
    run: Callable[[argparse.Namespace, Settings], int]


class CommandRegistry:
    """Ordered set of subcommands used to build the argument parser."""

    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}

    def register(self, command: Command) -> None:
        if command.name in self._commands:
            raise ValueError(f"command already registered: {command.name}")
        self._commands[command.name] = command

    def get(self, name: str) -> Optional[Command]:
        return self._commands.get(name)

    def names(self) -> list[str]:
        return list(self._commands)

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="ydrag",
            description="ydrag - semantic document retrieval with an MCP tool server",
        )
        parser.add_argument(
            "--config", default=DEFAULT_CONFIG_FILE, help="Config file (default: config.yaml)"
        )
        parser.add_argument("--model", help="Path to embedding model file (GGUF)")
        parser.add_argument("--lib", help="Path to the llama.cpp shared library")
        parser.add_argument("--db", help="Vector store path (:memory: for in-memory)")
        parser.add_argument("--store", help="Vector store backend (chroma, memory)")
        parser.add_argument("--context", help="Context size for embeddings")
        parser.add_argument("--batch", help="Batch size for processing")
        parser.add_argument("--mode", help="Embedding backend (production, mock)")
        parser.add_argument(
            "--verbose", action="store_true", default=None, help="Enable verbose logging"
        )

        subparsers = parser.add_subparsers(dest="command", help="Command to run")
        for command in self._commands.values():
            command.configure(subparsers.add_parser(command.name, help=command.help))
        return parser


# --- Commands ---


def _emit(response: ToolResponse) -> int:
    stream = sys.stderr if response.is_error else sys.stdout
    print(response.text, end="" if response.text.endswith("\n") else "\n", file=stream)
    return 1 if response.is_error else 0


def _configure_add(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("id", help="Unique document identifier")
    parser.add_argument("content", nargs="*", help="Document text")
    parser.add_argument("--file", help="Read the document text from a text or PDF file")


def run_add(args: argparse.Namespace, settings: Settings) -> int:
    """Add a document to the knowledge base."""
    if args.file:
        content = read_document_text(args.file)
    else:
        content = " ".join(args.content)

    with create_engine(settings) as engine:
        return _emit(ToolHandler(engine).handle("add_document", {"id": args.id, "content": content}))


def _configure_query(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("text", help="Search query text")
    parser.add_argument("top_k", nargs="?", help="Maximum number of results (default: 5)")


def parse_top_k(raw: Optional[str]) -> int:
    """Parse the optional top_k argument, keeping the default if it is not a number."""
    if raw is None:
        return DEFAULT_TOP_K
    try:
        return int(raw)
    except ValueError:
        logger.info("Ignoring top_k %r: not a number, using %d", raw, DEFAULT_TOP_K)
        return DEFAULT_TOP_K


def run_query(args: argparse.Namespace, settings: Settings) -> int:
    """Query the knowledge base."""
    arguments = {"query": args.text, "top_k": parse_top_k(args.top_k)}
    with create_engine(settings) as engine:
        return _emit(ToolHandler(engine).handle("query_documents", arguments))


def _configure_list(parser: argparse.ArgumentParser) -> None:
    pass


def run_list(args: argparse.Namespace, settings: Settings) -> int:
    """List every stored document."""
    with create_engine(settings) as engine:
        return _emit(ToolHandler(engine).handle("list_documents", {}))


def _configure_delete(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("id", help="Document identifier to delete")


def run_delete(args: argparse.Namespace, settings: Settings) -> int:
    """Delete a document."""
    with create_engine(settings) as engine:
        return _emit(ToolHandler(engine).handle("delete_document", {"id": args.id}))


def _configure_serve(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--transport", help="stdio (default), sse or streamable-http"
    )
    parser.add_argument("--host", help="Host for network transports (default: 127.0.0.1)")
    parser.add_argument("--port", help="Port for network transports (default: 8080)")


async def serve_until_signalled(transport: Transport) -> None:
    """Run ``transport`` until SIGINT or SIGTERM, then let it drain."""
    shutdown = anyio.Event()
    failure: Optional[ServerError] = None

    async def watch_signals() -> None:
        with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
            async for signum in signals:
                logger.info("Received %s, shutting down", signal.Signals(signum).name)
                shutdown.set()
                return

    async with anyio.create_task_group() as tg:
        tg.start_soon(watch_signals)
        try:
            await transport.serve(shutdown)
        except ServerError as e:
            failure = e
        tg.cancel_scope.cancel()

    if failure is not None:
        raise failure


def run_serve(args: argparse.Namespace, settings: Settings) -> int:
    """Start the MCP tool server."""
    with create_engine(settings) as engine:
        transport = create_transport(settings.transport, ToolHandler(engine), settings)
        if settings.transport == TransportKind.STDIO:
            print("Starting ydrag MCP server on stdio", file=sys.stderr)
        else:
            print(
                f"Starting ydrag MCP server ({settings.transport.value}) on "
                f"{settings.server_host}:{settings.server_port}",
                file=sys.stderr,
            )
        anyio.run(serve_until_signalled, transport)
    return 0


def default_registry() -> CommandRegistry:
    """Registry holding the built-in commands."""
    registry = CommandRegistry()
    registry.register(Command("add", "Add a document to the knowledge base", _configure_add, run_add))
    registry.register(Command("query", "Query the knowledge base", _configure_query, run_query))
    registry.register(Command("list", "List all documents", _configure_list, run_list))
    registry.register(Command("delete", "Delete a document", _configure_delete, run_delete))
    registry.register(Command("serve", "Start the MCP tool server", _configure_serve, run_serve))
    return registry


def _env_verbose() -> bool:
    return os.environ.get("YDRAG_VERBOSE", "").strip().lower() in {"1", "true", "yes", "on"}


def main(argv: Optional[list[str]] = None, registry: Optional[CommandRegistry] = None) -> int:
    """CLI entry point. Returns the process exit code."""
    registry = registry or default_registry()
    parser = registry.build_parser()
    args = parser.parse_args(argv)

    # configure logging before settings load so config warnings are visible
    setup_logging(bool(args.verbose) or _env_verbose())

    command = registry.get(args.command) if args.command else None
    if command is None:
        parser.print_help()
        return 1

    try:
        settings = load_settings(
            config_file=args.config,
            model=args.model,
            lib_path=args.lib,
            db_path=args.db,
            store=args.store,
            context_size=args.context,
            batch_size=args.batch,
            mode=args.mode,
            verbose=args.verbose,
            transport=getattr(args, "transport", None),
            server_host=getattr(args, "host", None),
            server_port=getattr(args, "port", None),
        )
        setup_logging(settings.verbose)
        return command.run(args, settings)
    except RAGError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
