from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Protocol

import fitz  # PyMuPDF
from fastapi.concurrency import run_in_threadpool

from .cache import KeyedLocks, MemoCache

logger = logging.getLogger(__name__)

# MuPDF contexts are not thread-safe; every library call goes through this lock.
_MUPDF_LOCK = threading.Lock()

PageKey = tuple[str, int, float]


class PdfRenderer(Protocol):
    """Decode PDF bytes and rasterize pages."""

    def open(self, data: bytes) -> Any: ...

    def page_count(self, document: Any) -> int: ...

    def render(self, document: Any, page_number: int, scale: float) -> bytes: ...

    def close(self, document: Any) -> None: ...


class PyMuPdfRenderer:
    """PdfRenderer backed by PyMuPDF.

    CMaps and the 14 standard fonts ship inside MuPDF, so no external
    resource directories are needed for correct glyph rendering.
    """

    def open(self, data: bytes) -> fitz.Document:
        with _MUPDF_LOCK:
            document = fitz.open(stream=data, filetype="pdf")
            # MuPDF repairs aggressively; an unusable file comes back with no pages.
            if document.page_count < 1:
                document.close()
                raise ValueError("PDF document has no pages")
        return document

    def page_count(self, document: fitz.Document) -> int:
        with _MUPDF_LOCK:
            return document.page_count

    def render(self, document: fitz.Document, page_number: int, scale: float) -> bytes:
        """Render a 1-based page to PNG, scale being the zoom over 72 dpi."""
        if scale <= 0:
            raise ValueError(f"Scale must be positive, got {scale}")
        with _MUPDF_LOCK:
            if not 1 <= page_number <= document.page_count:
                raise ValueError(f"Page {page_number} out of range (1..{document.page_count})")
            page = document.load_page(page_number - 1)
            pixmap = page.get_pixmap(matrix=fitz.Matrix(scale, scale))
            return pixmap.tobytes("png")

    def close(self, document: fitz.Document) -> None:
        with _MUPDF_LOCK:
            document.close()


class PdfPageConverter:
    """Render PDF pages to PNG, memoizing decoded documents and rendered pages.

    Callers pass already-validated absolute paths. Both caches are keyed on the
    path string and are never invalidated when the file changes on disk.
    Per-key locks make sure concurrent requests for the same document decode
    it once and concurrent requests for the same page render it once.
    """

    def __init__(
        self,
        renderer: PdfRenderer | None = None,
        document_cache_size: int = 0,
        page_cache_size: int = 0,
    ) -> None:
        self.renderer = renderer if renderer is not None else PyMuPdfRenderer()
        self.documents: MemoCache[str, Any] = MemoCache(document_cache_size)
        self.pages: MemoCache[PageKey, bytes] = MemoCache(page_cache_size)
        self._document_locks: KeyedLocks[str] = KeyedLocks()
        self._page_locks: KeyedLocks[PageKey] = KeyedLocks()

    async def convert(self, path: Path, page_number: int, scale: float) -> bytes:
        key: PageKey = (str(path), page_number, float(scale))
        cached = self.pages.get(key)
        if cached is not None:
            return cached

        async with self._page_locks.hold(key):
            cached = self.pages.get(key)
            if cached is not None:
                return cached
            document = await self._load_document(path)
            image = await run_in_threadpool(self.renderer.render, document, page_number, float(scale))
            return self.pages.put_if_absent(key, image)

    async def _load_document(self, path: Path) -> Any:
        key = str(path)
        document = self.documents.get(key)
        if document is not None:
            return document

        async with self._document_locks.hold(key):
            document = self.documents.get(key)
            if document is not None:
                return document
            logger.debug("Decoding PDF document: %s", path.name)
            data = await run_in_threadpool(path.read_bytes)
            document = await run_in_threadpool(self.renderer.open, data)
            return self.documents.put_if_absent(key, document)

    def page_count(self, data: bytes) -> int:
        """Decode data and return its page count without touching the caches."""
        document = self.renderer.open(data)
        try:
            return self.renderer.page_count(document)
        finally:
            self.renderer.close(document)

    def clear(self) -> None:
        """Close cached documents and empty both caches."""
        for document in self.documents.values():
            self.renderer.close(document)
        self.documents.clear()
        self.pages.clear()
