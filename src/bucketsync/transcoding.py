"""
Scoped temporary files and gzip transcoding.

Publication of text-like resources compresses the content into a temporary
file first, so arbitrarily large assets are handled with a fixed buffer.
"""
from __future__ import annotations

import gzip
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

__all__ = ["GZIP_CHUNK_SIZE", "scoped_temporary_file", "gzip_to_file"]

logger = logging.getLogger(__name__)

GZIP_CHUNK_SIZE = 524288  # 512 KiB


@contextmanager
def scoped_temporary_file(directory: Optional[str] = None, suffix: str = ".tmp") -> Iterator[Path]:
    """
    Reserve a temporary file path that is removed when the block exits.

    The file exists (empty) when the block is entered. Removal happens on
    every exit path, including exceptions.

    Args:
        directory: Parent directory (system temporary directory if None)
        suffix: File name suffix
    """
    fd, name = tempfile.mkstemp(prefix="bucketsync_", suffix=suffix, dir=directory)
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        try:
            path.unlink()
        except FileNotFoundError:
            pass


def gzip_to_file(source: BinaryIO, destination: Path, level: int = 9) -> int:
    """
    Drain source into destination through gzip.

    The gzip header carries no timestamp, so identical input always yields
    identical output.

    Args:
        source: Readable binary stream, read to its end
        destination: File to (over)write with the compressed content
        level: Compression level 1-9

    Returns:
        Number of uncompressed bytes read from source
    """
    if not 1 <= level <= 9:
        raise ValueError(f"gzip compression level must be between 1 and 9, got {level}")

    total = 0
    # Empty filename keeps the temporary file name out of the gzip header
    with open(destination, "wb") as raw:
        with gzip.GzipFile(filename="", fileobj=raw, mode="wb", compresslevel=level, mtime=0) as out:
            while True:
                chunk = source.read(GZIP_CHUNK_SIZE)
                if not chunk:
                    break
                out.write(chunk)
                total += len(chunk)
    logger.debug(f"Compressed {total} bytes into {destination} ({destination.stat().st_size} bytes, level {level})")
    return total
