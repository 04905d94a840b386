"""Basic retrieval engine example.

Demonstrates the add-and-query workflow using mock embeddings and the
in-memory store. No model file required.

Usage:
    python examples/basic_engine.py
"""

from src.rag.config import MockConfig
from src.rag.engine import create_engine


def main() -> None:
    # 1. Build an engine in mock mode (hashed embeddings, in-memory store)
    engine = create_engine(MockConfig.default())

    # 2. Add a few documents
    documents = {
        "fastapi": (
            "FastAPI is a modern Python web framework for building APIs. "
            "It provides automatic OpenAPI documentation and type validation with Pydantic."
        ),
        "docker": (
            "Docker containers package applications with their dependencies "
            "for consistent deployment across environments."
        ),
        "paris": "The capital of France is Paris",
    }
    for doc_id, content in documents.items():
        added = engine.add_document(doc_id, content)
        if added.is_err():
            print(f"Add failed: {added.error}")  # type: ignore[union-attr]
            return
    print(f"Stored {engine.document_count} documents")

    # 3. Query by similarity
    for query in ["What is FastAPI?", "capital of France", "deploy containers"]:
        result = engine.query(query, top_k=2)
        if result.is_err():
            print(f"Query failed: {result.error}")  # type: ignore[union-attr]
            continue
        print(f"\nQ: {query}")
        for rank, match in enumerate(result.unwrap(), 1):
            print(f"  {rank}. [{match.score:.4f}] {match.id}")

    # 4. Delete and list
    engine.delete_document("docker")
    print("\nRemaining:", [doc.id for doc in engine.list_documents().unwrap()])
    engine.close()


if __name__ == "__main__":
    main()
