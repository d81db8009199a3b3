from __future__ import annotations

from pathlib import Path

from .errors import UnprocessableInputError


def _is_within(root: Path, candidate: Path) -> bool:
    return candidate == root or root in candidate.parents


def check_path_safety(file_path: str | Path, root: Path) -> Path:
    """Reject paths that could escape the sandbox root.

    Fails on embedded NUL bytes (truncation tricks in OS calls) and on any
    path whose canonical form is not the root or beneath it. Canonicalizing
    first resolves '.', '..' and symlinks, so a crafted segment or a link
    pointing outside cannot pass. Returns the canonical path.
    """
    raw = str(file_path)
    if "\0" in raw:
        raise UnprocessableInputError("Unexpected null byte encountered")

    root = root.resolve()
    resolved = Path(raw).resolve()
    if not _is_within(root, resolved):
        raise UnprocessableInputError("Unacceptable file path")
    return resolved


def resolve_request_path(root: Path, base: Path, *parts: str) -> Path:
    """Join caller-supplied parts onto base and validate against root.

    Absolute parts replace the base on join and are then rejected by the
    containment check.
    """
    candidate = base
    for part in parts:
        candidate = candidate / part
    return check_path_safety(candidate, root)
