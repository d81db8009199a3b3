from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from fastapi.concurrency import run_in_threadpool

from .config import (
    DEFAULT_PDF_SCALE,
    DOCUMENT_CACHE_SIZE,
    PAGE_CACHE_SIZE,
    SUBDIRECTORY_BASE,
    SUBDIRECTORY_BASES,
    resolve_root_path,
)
from .errors import InternalError, NotFoundError
from .pdf import PdfPageConverter, PdfRenderer
from .security import resolve_request_path
from .xml_json import convert_xml_to_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirectoryFiles:
    file_names: list[str]
    files: list[bytes]  # files[i] holds the contents of file_names[i]


def _scan_names(directory: Path, directories: bool) -> list[str]:
    # Entry types come from the listing itself (no symlink following), in OS order.
    with os.scandir(directory) as entries:
        if directories:
            return [entry.name for entry in entries if entry.is_dir(follow_symlinks=False)]
        return [entry.name for entry in entries if entry.is_file(follow_symlinks=False)]


def _read_regular_file(path: Path) -> bytes:
    if not path.is_file():
        raise FileNotFoundError(f"{path.name} is not a file")
    return path.read_bytes()


class FileAccessService:
    """List, read and convert files beneath a fixed sandbox root.

    Every caller-supplied directory/file name is validated with the path
    safety check before any cache lookup or filesystem call. Directory and
    file failures surface as NotFoundError, conversion failures as
    InternalError; causes are logged here and never passed upward.
    """

    def __init__(
        self,
        root: Path | str | None = None,
        subdirectory_base: str | None = None,
        renderer: PdfRenderer | None = None,
        document_cache_size: int | None = None,
        page_cache_size: int | None = None,
        default_scale: float | None = None,
    ) -> None:
        self.root = Path(root if root is not None else resolve_root_path()).resolve()
        base = (subdirectory_base or SUBDIRECTORY_BASE).strip().lower()
        if base not in SUBDIRECTORY_BASES:
            raise ValueError(f"Unknown subdirectory base: {base}")
        self.subdirectory_base = base
        self.default_scale = DEFAULT_PDF_SCALE if default_scale is None else default_scale
        self.pdf = PdfPageConverter(
            renderer=renderer,
            document_cache_size=DOCUMENT_CACHE_SIZE if document_cache_size is None else document_cache_size,
            page_cache_size=PAGE_CACHE_SIZE if page_cache_size is None else page_cache_size,
        )

    def _resolve(self, *parts: str) -> Path:
        return resolve_request_path(self.root, self.root, *parts)

    def _subdirectory_base_dir(self) -> Path:
        # "cwd" keeps the historical behaviour; the safety check still uses self.root.
        if self.subdirectory_base == "root":
            return self.root
        return Path.cwd()

    @staticmethod
    def _directory_error(directory: str) -> NotFoundError:
        message = f"Error reading directory: {directory}"
        logger.error(message, exc_info=True)
        return NotFoundError(message)

    async def _file_names(self, directory: str) -> list[str]:
        path = self._resolve(directory)
        return await run_in_threadpool(_scan_names, path, False)

    async def count_files(self, directory: str) -> int:
        logger.debug("Retrieving number of files in folder: %s", directory)
        try:
            names = await self._file_names(directory)
        except Exception as exc:
            raise self._directory_error(directory) from exc
        return len(names)

    async def list_files(self, directory: str) -> DirectoryFiles:
        """Read every regular file in directory; any failed read fails the whole listing."""
        logger.debug("Reading all files in directory: %s", directory)
        try:
            file_names = await self._file_names(directory)
            files = [await self.read_file(directory, name) for name in file_names]
        except Exception as exc:
            raise self._directory_error(directory) from exc
        return DirectoryFiles(file_names=file_names, files=files)

    async def list_file_names(self, directory: str) -> list[str]:
        logger.debug("Reading all file names in directory: %s", directory)
        try:
            return await self._file_names(directory)
        except Exception as exc:
            raise self._directory_error(directory) from exc

    async def list_subdirectory_names(self, directory: str) -> list[str]:
        logger.debug("Reading all folders in directory: %s", directory)
        try:
            path = resolve_request_path(self.root, self._subdirectory_base_dir(), directory)
            return await run_in_threadpool(_scan_names, path, True)
        except Exception as exc:
            raise self._directory_error(directory) from exc

    async def read_file(self, directory: str, file_name: str) -> bytes:
        logger.debug("Retrieving file: %s in folder: %s", file_name, directory)
        try:
            path = self._resolve(directory, file_name)
            return await run_in_threadpool(_read_regular_file, path)
        except Exception as exc:
            message = f"Error retrieving file: {file_name} in folder: {directory}"
            logger.error(message, exc_info=True)
            raise NotFoundError(message) from exc

    async def read_file_as_stream(self, directory: str, file_name: str) -> BinaryIO:
        return io.BytesIO(await self.read_file(directory, file_name))

    async def count_pdf_pages(self, directory: str, file_name: str) -> int:
        data = await self.read_file(directory, file_name)
        try:
            return await run_in_threadpool(self.pdf.page_count, data)
        except Exception as exc:
            message = f"Error reading PDF: {file_name}"
            logger.error(message, exc_info=True)
            raise InternalError(message) from exc

    async def convert_pdf_page(
        self,
        directory: str,
        file_name: str,
        page_number: int,
        scale: float | None = None,
    ) -> bytes:
        """Render one 1-based page of a PDF to PNG bytes.

        A cached page is returned without decoding or rendering. Path safety
        violations raise UnprocessableInputError before any cache lookup.
        """
        scale = self.default_scale if scale is None else scale
        path = self._resolve(directory, file_name)
        try:
            return await self.pdf.convert(path, page_number, scale)
        except Exception as exc:
            message = f"Error converting PDF to PNG: {file_name}"
            logger.error(message, exc_info=True)
            raise InternalError(message) from exc

    async def convert_xml_to_json(self, data: bytes) -> str:
        try:
            return await run_in_threadpool(convert_xml_to_json, data)
        except Exception as exc:
            message = "Error converting XML to JSON"
            logger.error(message, exc_info=True)
            raise InternalError(message) from exc

    def close(self) -> None:
        """Close cached PDF documents and drop both caches."""
        self.pdf.clear()
