"""Tests for CLI interface."""

from pathlib import Path
from unittest.mock import patch

import pytest

from src.rag.cli import Command, CommandRegistry, default_registry, main, parse_top_k

MOCK_FLAGS = ["--mode", "mock", "--config", "none.yaml"]


@pytest.fixture
def db(tmp_path: Path) -> list[str]:
    """Flags for a Chroma store that persists between CLI invocations."""
    return MOCK_FLAGS + ["--store", "chroma", "--db", str(tmp_path / "db")]


class TestCommandRegistry:
    def test_default_commands(self) -> None:
        assert default_registry().names() == ["add", "query", "list", "delete", "serve"]

    def test_duplicate_rejected(self) -> None:
        registry = CommandRegistry()
        command = Command("noop", "Do nothing", lambda parser: None, lambda args, settings: 0)
        registry.register(command)
        with pytest.raises(ValueError, match="already registered"):
            registry.register(command)

    def test_custom_registry(self) -> None:
        registry = CommandRegistry()
        registry.register(
            Command("ping", "Reply", lambda parser: None, lambda args, settings: 7)
        )
        assert main(MOCK_FLAGS + ["ping"], registry=registry) == 7


class TestParseTopK:
    def test_default(self) -> None:
        assert parse_top_k(None) == 5

    def test_number(self) -> None:
        assert parse_top_k("3") == 3

    def test_unparseable_falls_back(self) -> None:
        assert parse_top_k("three") == 5


class TestMain:
    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_add_query_list_delete(
        self, db: list[str], capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(db + ["add", "doc1", "The", "capital", "of", "France", "is", "Paris"]) == 0
        assert main(db + ["add", "doc2", "Rust is a systems language"]) == 0
        out = capsys.readouterr().out
        assert "Document 'doc1' added successfully" in out
        assert "Document 'doc2' added successfully" in out

        assert main(db + ["query", "capital of France", "1"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("1. [")
        assert "doc1: The capital of France is Paris" in out
        assert "doc2" not in out

        assert main(db + ["delete", "doc2"]) == 0
        assert "Document 'doc2' deleted successfully" in capsys.readouterr().out

        assert main(db + ["list"]) == 0
        out = capsys.readouterr().out
        assert out == (
            "Documents in knowledge base (1 total):\n"
            "  doc1: The capital of France is Paris\n"
        )

    def test_add_from_file(
        self, db: list[str], tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        source = tmp_path / "notes.txt"
        source.write_text("Notes about vector search", encoding="utf-8")
        assert main(db + ["add", "notes", "--file", str(source)]) == 0
        assert main(db + ["list"]) == 0
        assert "notes: Notes about vector search" in capsys.readouterr().out

    def test_add_missing_file(
        self, db: list[str], tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(db + ["add", "x", "--file", str(tmp_path / "absent.txt")]) == 1
        assert "Error: file not found" in capsys.readouterr().err

    def test_add_without_content(self, db: list[str], capsys: pytest.CaptureFixture[str]) -> None:
        assert main(db + ["add", "doc1"]) == 1
        assert "Error: document content is required" in capsys.readouterr().err

    def test_delete_missing(self, db: list[str], capsys: pytest.CaptureFixture[str]) -> None:
        assert main(db + ["delete", "ghost"]) == 1
        assert "document 'ghost' not found" in capsys.readouterr().err

    def test_empty_list(self, db: list[str], capsys: pytest.CaptureFixture[str]) -> None:
        assert main(db + ["list"]) == 0
        assert capsys.readouterr().out == "No documents in knowledge base\n"

    def test_production_without_model(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("YDRAG_MODEL", raising=False)
        monkeypatch.delenv("YDRAG_MODE", raising=False)
        code = main(["--config", "none.yaml", "--db", str(tmp_path / "db"), "list"])
        assert code == 1
        assert "model path is required" in capsys.readouterr().err

    def test_invalid_transport(self, db: list[str], capsys: pytest.CaptureFixture[str]) -> None:
        assert main(db + ["serve", "--transport", "telegraph"]) == 1
        assert "unsupported transport" in capsys.readouterr().err

    def test_serve_runs_transport(self, db: list[str]) -> None:
        with patch("src.rag.cli.anyio.run") as run:
            assert main(db + ["serve", "--transport", "push-stream", "--port", "0"]) == 0
        transport = run.call_args.args[1]
        assert transport.kind.value == "sse"
