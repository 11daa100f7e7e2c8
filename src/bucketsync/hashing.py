"""
Content hashing for resources.

SHA1 is the primary identity of a resource and the storage object key.
MD5 is computed alongside for catalogs that still carry the legacy digest.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional, Union

__all__ = ["ContentDigest", "ContentHasher", "digest_bytes", "digest_file", "SHA1_PATTERN"]

CHUNK_SIZE = 1024 * 1024  # 1 MiB

SHA1_PATTERN = r"^[0-9a-f]{40}$"


@dataclass(frozen=True)
class ContentDigest:
    """
    Digests and size of a piece of content.

    Invariants:
    - sha1: exactly 40 lowercase hex characters
    - md5: 32 lowercase hex characters, or None when legacy hashing is off
    - size: exact byte length (>= 0)
    """
    sha1: str
    size: int
    md5: Optional[str] = None


class ContentHasher:
    """Incremental SHA1 (and optional MD5) hasher."""

    def __init__(self, *, with_md5: bool = True) -> None:
        self._sha1 = hashlib.sha1()
        self._md5 = hashlib.md5() if with_md5 else None
        self._size = 0

    def update(self, chunk: bytes) -> None:
        self._sha1.update(chunk)
        if self._md5 is not None:
            self._md5.update(chunk)
        self._size += len(chunk)

    def digest(self) -> ContentDigest:
        return ContentDigest(
            sha1=self._sha1.hexdigest(),
            size=self._size,
            md5=self._md5.hexdigest() if self._md5 is not None else None,
        )

    def consume(self, stream: BinaryIO) -> ContentDigest:
        """
        Hash a stream to its end.

        Args:
            stream: Readable binary stream

        Returns:
            Digest of everything read
        """
        while True:
            chunk = stream.read(CHUNK_SIZE)
            if not chunk:
                break
            self.update(chunk)
        return self.digest()


def digest_bytes(content: bytes, *, with_md5: bool = True) -> ContentDigest:
    """Compute digests of in-memory content."""
    hasher = ContentHasher(with_md5=with_md5)
    hasher.update(content)
    return hasher.digest()


def digest_file(path: Union[str, Path], *, with_md5: bool = True) -> ContentDigest:
    """Compute digests of a file without loading it into memory."""
    with open(path, "rb") as f:
        return ContentHasher(with_md5=with_md5).consume(f)
