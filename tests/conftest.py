from __future__ import annotations

import threading
from pathlib import Path

import fitz  # PyMuPDF
import pytest


def write_pdf(path: Path, pages: int) -> Path:
    document = fitz.open()
    for number in range(1, pages + 1):
        page = document.new_page()
        page.insert_text((72, 72), f"Page {number}")
    document.save(str(path))
    document.close()
    return path


class CountingRenderer:
    """Renderer double that records every decode/render call."""

    def __init__(self, pages: int = 3) -> None:
        self.pages = pages
        self.opened = 0
        self.rendered: list[tuple[int, float]] = []
        self.closed = 0
        self._lock = threading.Lock()

    def open(self, data: bytes) -> dict:
        with self._lock:
            self.opened += 1
        return {"data": data, "pages": self.pages}

    def page_count(self, document: dict) -> int:
        return document["pages"]

    def render(self, document: dict, page_number: int, scale: float) -> bytes:
        if not 1 <= page_number <= document["pages"]:
            raise ValueError("page out of range")
        with self._lock:
            self.rendered.append((page_number, scale))
        return f"png:{page_number}:{scale}".encode()

    def close(self, document: dict) -> None:
        self.closed += 1


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """Sandbox root:

    docs/a.txt, docs/b.txt, docs/sub/c.txt, pdfs/three.pdf, pdfs/broken.pdf
    """
    sandbox = tmp_path / "root"
    docs = sandbox / "docs"
    (docs / "sub").mkdir(parents=True)
    (docs / "a.txt").write_bytes(b"alpha")
    (docs / "b.txt").write_bytes(b"bravo")
    (docs / "sub" / "c.txt").write_bytes(b"charlie")

    pdfs = sandbox / "pdfs"
    pdfs.mkdir()
    write_pdf(pdfs / "three.pdf", 3)
    (pdfs / "broken.pdf").write_bytes(b"this is not a pdf")

    (tmp_path / "outside.txt").write_bytes(b"secret")
    return sandbox


@pytest.fixture
def renderer() -> CountingRenderer:
    return CountingRenderer()
