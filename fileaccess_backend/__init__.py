"""Backend utilities for the sandboxed file-access service.

This package keeps FastAPI route handlers thin:
- path handling with traversal protection
- directory listing and raw file reads under the root
- PDF page rendering with document + page caches
- XML to JSON transcoding

Security note:
Every caller-supplied directory or file name is joined onto the root,
canonicalized and checked for containment before any filesystem call. Error
messages name the requested directory/file only, never the absolute path.
"""
