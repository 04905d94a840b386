"""Tool definitions exposing the retrieval engine as named operations.

``ToolHandler.handle`` is the single entry point every transport binds to.
It validates arguments, calls the engine and maps the outcome to a
``ToolResponse`` carrying both a human-readable summary and a typed result.
Failures of any kind come back as error responses, never as exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from src.rag.document import truncate
from src.rag.engine import DEFAULT_TOP_K, RetrievalEngine

logger = logging.getLogger(__name__)


# --- Argument models ---


class AddDocumentArgs(BaseModel):
    """Arguments for add_document."""

    model_config = ConfigDict(json_schema_extra={"required": ["id", "content"]})

    id: str = Field(default="", description="Unique document identifier")
    content: str = Field(default="", description="Document content text")


class QueryDocumentsArgs(BaseModel):
    """Arguments for query_documents."""

    model_config = ConfigDict(json_schema_extra={"required": ["query"]})

    query: str = Field(default="", description="Search query text")
    top_k: int = Field(
        default=DEFAULT_TOP_K,
        description="Maximum number of results to return (default: 5)",
    )


class ListDocumentsArgs(BaseModel):
    """list_documents takes no arguments."""


class DeleteDocumentArgs(BaseModel):
    """Arguments for delete_document."""

    model_config = ConfigDict(json_schema_extra={"required": ["id"]})

    id: str = Field(default="", description="Document identifier to delete")


# --- Result models ---


class OperationResult(BaseModel):
    """Outcome of add_document and delete_document."""

    success: bool
    message: str

    @classmethod
    def failed(cls, message: str) -> OperationResult:
        return cls(success=False, message=message)


class QueryResult(BaseModel):
    """A single document match from a similarity search."""

    id: str
    content: str
    score: float


class QueryDocumentsResult(BaseModel):
    """Matches for a query, best first."""

    results: list[QueryResult] = Field(default_factory=list)
    count: int = 0

    @classmethod
    def failed(cls, message: str) -> QueryDocumentsResult:
        return cls()


class DocumentItem(BaseModel):
    """A stored document's id and content."""

    id: str
    content: str


class ListDocumentsResult(BaseModel):
    """Every document in the knowledge base, ordered by id."""

    documents: list[DocumentItem] = Field(default_factory=list)
    total: int = 0

    @classmethod
    def failed(cls, message: str) -> ListDocumentsResult:
        return cls()


# --- Handler ---


@dataclass(frozen=True, slots=True)
class ToolResponse:
    """Transport-neutral tool outcome."""

    text: str
    structured: dict[str, Any]
    is_error: bool = False


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """A named tool with its argument and result schemas."""

    name: str
    description: str
    args_model: type[BaseModel]
    result_model: type[BaseModel]
    run: Callable[[Any], ToolResponse]

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.args_model.model_json_schema()

    @property
    def output_schema(self) -> dict[str, Any]:
        return self.result_model.model_json_schema()


def _ok(text: str, result: BaseModel) -> ToolResponse:
    return ToolResponse(text=text, structured=result.model_dump())


def _error(text: str, result: BaseModel) -> ToolResponse:
    return ToolResponse(text=text, structured=result.model_dump(), is_error=True)


class ToolHandler:
    """Maps tool calls onto a RetrievalEngine.

    Safe to call from many threads at once; the engine serializes access to
    the embedding model.
    """

    def __init__(self, engine: RetrievalEngine) -> None:
        self._engine = engine
        specs = [
            ToolSpec(
                name="add_document",
                description=(
                    "Add a document to the RAG knowledge base with embeddings "
                    "generated automatically"
                ),
                args_model=AddDocumentArgs,
                result_model=OperationResult,
                run=self._add_document,
            ),
            ToolSpec(
                name="query_documents",
                description=(
                    "Search the knowledge base for documents similar to the query "
                    "text using vector similarity"
                ),
                args_model=QueryDocumentsArgs,
                result_model=QueryDocumentsResult,
                run=self._query_documents,
            ),
            ToolSpec(
                name="list_documents",
                description="List all documents in the knowledge base",
                args_model=ListDocumentsArgs,
                result_model=ListDocumentsResult,
                run=self._list_documents,
            ),
            ToolSpec(
                name="delete_document",
                description="Delete a document from the knowledge base",
                args_model=DeleteDocumentArgs,
                result_model=OperationResult,
                run=self._delete_document,
            ),
        ]
        self._tools = {spec.name: spec for spec in specs}

    @property
    def engine(self) -> RetrievalEngine:
        return self._engine

    @property
    def tools(self) -> list[ToolSpec]:
        return list(self._tools.values())

    def handle(self, name: str, arguments: Optional[dict[str, Any]] = None) -> ToolResponse:
        """Run the tool called ``name`` with raw JSON ``arguments``."""
        spec = self._tools.get(name)
        if spec is None:
            return ToolResponse(text=f"Error: unknown tool '{name}'", structured={}, is_error=True)

        try:
            args = spec.args_model.model_validate(arguments or {})
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            message = f"invalid arguments: {problems}"
            logger.debug("Rejected %s call: %s", name, message)
            return _error(f"Error: {message}", spec.result_model.failed(message))  # type: ignore[attr-defined]

        logger.debug("Calling tool %s", name)
        return spec.run(args)

    def _add_document(self, args: AddDocumentArgs) -> ToolResponse:
        if not args.id.strip():
            return _error("Error: document ID is required", OperationResult.failed("document ID is required"))
        if not args.content.strip():
            return _error(
                "Error: document content is required",
                OperationResult.failed("document content is required"),
            )

        result = self._engine.add_document(args.id, args.content)
        if result.is_err():
            error = result.error  # type: ignore[union-attr]
            logger.warning("add_document %s failed: %s", args.id, error)
            return _error(f"Error adding document: {error}", OperationResult.failed(str(error)))

        message = f"Document '{args.id}' added successfully"
        return _ok(message, OperationResult(success=True, message=message))

    def _query_documents(self, args: QueryDocumentsArgs) -> ToolResponse:
        if not args.query.strip():
            return _error("Error: query text is required", QueryDocumentsResult())

        result = self._engine.query(args.query, args.top_k).map(
            lambda found: [QueryResult(id=r.id, content=r.content, score=r.score) for r in found]
        )
        if result.is_err():
            error = result.error  # type: ignore[union-attr]
            logger.warning("query_documents failed: %s", error)
            return _error(f"Error querying documents: {error}", QueryDocumentsResult())

        matches = result.unwrap()
        payload = QueryDocumentsResult(results=matches, count=len(matches))
        if not matches:
            return _ok("No matching documents found", payload)

        text = "".join(
            f"{i}. [{m.score:.4f}] {m.id}: {truncate(m.content, 100)}\n"
            for i, m in enumerate(matches, 1)
        )
        return _ok(text, payload)

    def _list_documents(self, args: ListDocumentsArgs) -> ToolResponse:
        result = self._engine.list_documents().map(
            lambda docs: [DocumentItem(id=d.id, content=d.content) for d in docs]
        )
        if result.is_err():
            error = result.error  # type: ignore[union-attr]
            logger.warning("list_documents failed: %s", error)
            return _error(f"Error listing documents: {error}", ListDocumentsResult())

        items = result.unwrap()
        payload = ListDocumentsResult(documents=items, total=len(items))
        if not items:
            return _ok("No documents in knowledge base", payload)

        lines = "".join(f"  {d.id}: {truncate(d.content, 80)}\n" for d in items)
        return _ok(f"Documents in knowledge base ({len(items)} total):\n{lines}", payload)

    def _delete_document(self, args: DeleteDocumentArgs) -> ToolResponse:
        if not args.id.strip():
            return _error("Error: document ID is required", OperationResult.failed("document ID is required"))

        result = self._engine.delete_document(args.id)
        if result.is_err():
            error = result.error  # type: ignore[union-attr]
            logger.warning("delete_document %s failed: %s", args.id, error)
            return _error(f"Error deleting document: {error}", OperationResult.failed(str(error)))

        message = f"Document '{args.id}' deleted successfully"
        return _ok(message, OperationResult(success=True, message=message))
