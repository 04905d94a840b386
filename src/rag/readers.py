"""Load document text from files for ingestion."""

from __future__ import annotations

from pathlib import Path
from typing import Union

import PyPDF2
from PyPDF2.errors import PdfReadError

from src.rag.errors import ValidationError


def read_pdf(path: Union[str, Path]) -> str:
    """Extract the plain text of every page of a PDF."""
    reader = PyPDF2.PdfReader(str(path))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n".join(text.strip() for text in pages if text.strip())


def read_document_text(path: Union[str, Path]) -> str:
    """Return the text of a .pdf or plain-text file.

    Raises:
        ValidationError: if the file is missing, unreadable or empty.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise ValidationError(f"file not found: {file_path}")

    try:
        if file_path.suffix.lower() == ".pdf":
            text = read_pdf(file_path)
        else:
            text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError, PdfReadError) as e:
        raise ValidationError(f"unable to read {file_path}: {e}") from e

    if not text.strip():
        raise ValidationError(f"no text content in {file_path}")
    return text
