from __future__ import annotations

import os
from pathlib import Path


# Root directory all file operations are sandboxed beneath.
# Default: the installation directory (project root).
# Override with env var FILEACCESS_ROOT.
_root_raw = os.environ.get("FILEACCESS_ROOT")
if _root_raw and _root_raw.strip():
    ROOT_PATH = Path(_root_raw)
else:
    # fileaccess_backend/ -> project root
    ROOT_PATH = Path(__file__).resolve().parent.parent
ROOT_PATH = ROOT_PATH.resolve()

# Which directory subdirectory listings are relative to: "cwd" (process working
# directory, the historical behaviour) or "root" (same as every other operation).
SUBDIRECTORY_BASE = os.environ.get("FILEACCESS_SUBDIRECTORY_BASE", "cwd").strip().lower()
SUBDIRECTORY_BASES = {"cwd", "root"}
if SUBDIRECTORY_BASE not in SUBDIRECTORY_BASES:
    raise ValueError(f"FILEACCESS_SUBDIRECTORY_BASE must be one of {sorted(SUBDIRECTORY_BASES)}")

# Zoom factor applied to the 72 dpi page size when rendering PDF pages.
DEFAULT_PDF_SCALE = float(os.environ.get("FILEACCESS_PDF_SCALE", "4"))

# Cache bounds (entries). 0 keeps the cache unbounded: entries are never
# evicted and go stale if the source file changes on disk.
DOCUMENT_CACHE_SIZE = int(os.environ.get("FILEACCESS_DOCUMENT_CACHE_SIZE", "0"))
PAGE_CACHE_SIZE = int(os.environ.get("FILEACCESS_PAGE_CACHE_SIZE", "0"))

LOG_LEVEL = os.environ.get("FILEACCESS_LOG_LEVEL", "INFO").upper()

# Chunk size used when streaming raw file bodies.
STREAM_CHUNK_BYTES = 64 * 1024


def resolve_root_path() -> Path:
    """Return the sandbox root for this deployment."""
    return ROOT_PATH

