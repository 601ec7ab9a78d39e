"""
Document decoding for the viewer.

Detects the document kind of an uploaded file and extracts what the core
needs from it: text content, page count and natural page sizes (PDFs are read
with PyMuPDF).
"""

import logging
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import fitz  # PyMuPDF

from document_registry import DocumentKind

logger = logging.getLogger(__name__)

_MIME_KINDS = {
    "application/pdf": DocumentKind.PAGINATED,
    "text/html": DocumentKind.MARKUP,
    "application/xhtml+xml": DocumentKind.MARKUP,
    "text/plain": DocumentKind.PLAIN_TEXT,
}

_SUFFIX_KINDS = {
    ".pdf": DocumentKind.PAGINATED,
    ".html": DocumentKind.MARKUP,
    ".htm": DocumentKind.MARKUP,
    ".xhtml": DocumentKind.MARKUP,
    ".txt": DocumentKind.PLAIN_TEXT,
}


class UnsupportedDocumentError(ValueError):
    pass


@dataclass
class LoadedDocument:
    kind: DocumentKind
    path: str
    text: str
    page_count: Optional[int] = None
    page_sizes: list = field(default_factory=list)

    @property
    def natural_page_size(self) -> Optional[tuple]:
        return self.page_sizes[0] if self.page_sizes else None

    def page_size(self, page_number: int) -> Optional[tuple]:
        """Natural (width, height) of a 1-based page, or None."""
        if 1 <= page_number <= len(self.page_sizes):
            return self.page_sizes[page_number - 1]
        return None


def detect_kind(path: str, mime: Optional[str] = None) -> Optional[DocumentKind]:
    """Document kind from an explicit MIME type, else from the file name."""
    if mime and mime in _MIME_KINDS:
        return _MIME_KINDS[mime]
    kind = _SUFFIX_KINDS.get(Path(path).suffix.lower())
    if kind is not None:
        return kind
    guessed, _ = mimetypes.guess_type(str(path))
    return _MIME_KINDS.get(guessed)


def _load_pdf(path: str) -> LoadedDocument:
    doc = fitz.open(path)
    try:
        texts = []
        sizes = []
        for page in doc:
            texts.append(page.get_text("text"))
            sizes.append((page.rect.width, page.rect.height))
        page_count = len(doc)
    finally:
        doc.close()
    return LoadedDocument(
        kind=DocumentKind.PAGINATED,
        path=str(path),
        text="\n".join(texts),
        page_count=page_count,
        page_sizes=sizes,
    )


def load_document(
    path: str,
    kind: Optional[DocumentKind] = None,
    mime: Optional[str] = None,
) -> LoadedDocument:
    """
    Decode a document from disk.

    Args:
        path: File to read
        kind: Force a kind instead of detecting it
        mime: Optional MIME type reported by the caller

    Returns:
        LoadedDocument; markup and plain text have no page count (markup is
        paginated later from its rendered height)

    Raises:
        UnsupportedDocumentError: if the kind cannot be determined
    """
    kind = kind or detect_kind(path, mime)
    if kind is None:
        raise UnsupportedDocumentError(f"Unsupported document type: {path}")

    if kind is DocumentKind.PAGINATED:
        loaded = _load_pdf(path)
    else:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
        loaded = LoadedDocument(kind=kind, path=str(path), text=text)

    logger.info(
        "Decoded %s as %s (%d chars, %s pages)",
        path,
        kind.value,
        len(loaded.text),
        loaded.page_count if loaded.page_count is not None else "?",
    )
    return loaded

