"""
Object key construction helpers.

Centralizes the logic for deriving storage and publication keys from resource
metadata. Storage keys are content-addressed and flat; publication keys keep
the filename readable while the SHA1 directory keeps them collision-free.
"""
from __future__ import annotations

from typing import Protocol
from urllib.parse import quote


class PublishableMetadata(Protocol):
    """What key derivation needs to know about a resource or storage object."""
    sha1: str
    filename: str
    relative_publication_path: str


def normalize_key_prefix(key_prefix: str) -> str:
    """
    Strip leading slashes from a key prefix.

    Examples:
        >>> normalize_key_prefix("/assets/")
        'assets/'
    """
    return (key_prefix or "").lstrip("/")


def storage_key(key_prefix: str, sha1: str) -> str:
    """
    Build the storage object key for content with the given SHA1.

    Examples:
        >>> storage_key("persistent/", "abc123")
        'persistent/abc123'
    """
    if not sha1:
        raise ValueError("sha1 cannot be empty")
    return f"{key_prefix}{sha1}"


def is_storage_key(key_prefix: str, key: str) -> bool:
    """
    True if key could name a content object stored under key_prefix.

    Storage keys are flat, so anything nested below the prefix is not one.

    Examples:
        >>> is_storage_key("storage/", "storage/abc123")
        True
        >>> is_storage_key("", "abc123/logo.svg")
        False
    """
    if not key.startswith(key_prefix):
        return False
    remainder = key[len(key_prefix):]
    return bool(remainder) and "/" not in remainder


def relative_publication_path(metadata: PublishableMetadata) -> str:
    """
    Build the publication path of a resource relative to the key prefix.

    A resource carrying its own relative publication path (static resources)
    is published under it; persistent resources go to "{sha1}/{filename}".

    Examples:
        >>> from types import SimpleNamespace
        >>> relative_publication_path(SimpleNamespace(
        ...     sha1="abc123", filename="logo.svg", relative_publication_path=""))
        'abc123/logo.svg'
        >>> relative_publication_path(SimpleNamespace(
        ...     sha1="abc123", filename="site.css", relative_publication_path="static/css/"))
        'static/css/site.css'
    """
    if metadata.relative_publication_path:
        return f"{metadata.relative_publication_path}{metadata.filename}"
    return f"{metadata.sha1}/{metadata.filename}"


def publication_key(key_prefix: str, metadata: PublishableMetadata) -> str:
    """Build the full target object key of a resource."""
    return f"{key_prefix}{relative_publication_path(metadata)}"


def encode_uri_path(path: str) -> str:
    """
    Percent-encode every segment of a path, keeping slashes as separators.

    Examples:
        >>> encode_uri_path("abc123/my logo.svg")
        'abc123/my%20logo.svg'
    """
    return "/".join(quote(segment, safe="") for segment in path.split("/"))


__all__ = [
    "PublishableMetadata",
    "is_storage_key",
    "normalize_key_prefix",
    "storage_key",
    "relative_publication_path",
    "publication_key",
    "encode_uri_path",
]
