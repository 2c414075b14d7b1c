"""PDF text extraction with PyMuPDF."""

from __future__ import annotations

from typing import Protocol

import fitz

from deckforge.core.errors import InputUnreadable


class TextExtractor(Protocol):
    def page_count(self, pdf_bytes: bytes) -> int: ...

    def extract(self, pdf_bytes: bytes) -> str: ...


class PyMuPDFExtractor:
    def page_count(self, pdf_bytes: bytes) -> int:
        try:
            with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
                return doc.page_count or 1
        except Exception as e:  # noqa: BLE001
            raise InputUnreadable("Failed to read PDF file") from e

    def extract(self, pdf_bytes: bytes) -> str:
        try:
            with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
                return "\n".join(page.get_text("text") or "" for page in doc)
        except Exception as e:  # noqa: BLE001
            raise InputUnreadable("Failed to read PDF file") from e
