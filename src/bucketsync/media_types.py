"""
Media type constants and helpers.

Media types are derived from the filename extension, the way the host
application's resource catalog does it.
"""
from __future__ import annotations

import mimetypes
from pathlib import PurePosixPath

__all__ = [
    "DEFAULT_MEDIA_TYPE",
    "DEFAULT_GZIP_MEDIA_TYPES",
    "media_type_for_filename",
    "file_extension",
]

DEFAULT_MEDIA_TYPE = "application/octet-stream"

# Text-like types that benefit from gzip content-encoding on publication
DEFAULT_GZIP_MEDIA_TYPES = (
    "text/plain",
    "text/css",
    "text/xml",
    "text/mathml",
    "text/javascript",
    "application/x-javascript",
    "application/xml",
    "application/rss+xml",
    "application/atom+xml",
    "application/javascript",
    "application/json",
    "application/x-font-woff",
    "image/svg+xml",
)

# Types the platform mimetypes table gets wrong or lacks
_OVERRIDES = {
    "js": "application/javascript",
    "mjs": "application/javascript",
    "json": "application/json",
    "svg": "image/svg+xml",
    "woff": "application/x-font-woff",
    "woff2": "font/woff2",
    "webp": "image/webp",
    "md": "text/markdown",
}


def file_extension(filename: str) -> str:
    """
    Return the lowercase extension of filename without the dot.

    Examples:
        >>> file_extension("logo.SVG")
        'svg'
        >>> file_extension("README")
        ''
    """
    suffix = PurePosixPath(filename).suffix
    return suffix[1:].lower() if suffix else ""


def media_type_for_filename(filename: str) -> str:
    """Derive the IANA media type from the filename extension."""
    extension = file_extension(filename)
    if not extension:
        return DEFAULT_MEDIA_TYPE
    if extension in _OVERRIDES:
        return _OVERRIDES[extension]
    guessed, _ = mimetypes.guess_type(f"file.{extension}", strict=False)
    return guessed or DEFAULT_MEDIA_TYPE
