"""Error categories surfaced by the file-access service.

Each category maps to one HTTP status so the boundary layer can translate
failures without inspecting messages. Messages name the requested
directory/file only; underlying causes are logged where they are caught.
"""
from __future__ import annotations


class FileAccessError(Exception):
    """Base class for all service errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(FileAccessError):
    """Missing or unreadable file/directory."""

    status_code = 404


class UnprocessableInputError(FileAccessError):
    """Caller-supplied path failed the safety check."""

    status_code = 422


class InternalError(FileAccessError):
    """Conversion, decoding or parsing failed after successful I/O."""

    status_code = 500
