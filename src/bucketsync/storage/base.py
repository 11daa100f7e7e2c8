"""
Bucket interfaces for bucketsync.

These protocols define the boundary between the storage/target logic and the
cloud provider SDK, enabling clean dependency injection and testing with fakes.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Iterator, Optional, Protocol, Union, runtime_checkable

__all__ = [
    "ObjectMetadata",
    "Bucket",
    "BucketClient",
    "SourceLocatable",
    "PUBLIC_READ",
    "PUBLIC_CACHE_CONTROL",
]

PUBLIC_READ = "publicRead"

# 14 days
PUBLIC_CACHE_CONTROL = "public, max-age=1209600"


@dataclass(frozen=True)
class ObjectMetadata:
    """
    HTTP metadata stored with an object.

    None means "leave unset" on upload and "leave unchanged" on update.
    """
    content_type: Optional[str] = None
    cache_control: Optional[str] = None
    content_encoding: Optional[str] = None


@runtime_checkable
class Bucket(Protocol):
    """Protocol for operations on one named bucket."""

    @property
    def name(self) -> str:
        ...

    def upload(
        self,
        source: Union[BinaryIO, bytes],
        name: str,
        metadata: ObjectMetadata = ObjectMetadata(),
        *,
        predefined_acl: Optional[str] = None,
    ) -> None:
        """
        Upload content as object name, overwriting any existing object.

        Raises:
            BucketNotFound: If the bucket does not exist
            TransientProviderError: For network/service errors
        """
        ...

    def download(self, name: str) -> BinaryIO:
        """
        Open the content of an object for reading.

        Raises:
            ObjectNotFound: If the object does not exist
            TransientProviderError: For network/service errors
        """
        ...

    def exists(self, name: str) -> bool:
        """Check if the object exists."""
        ...

    def delete(self, name: str) -> None:
        """
        Delete an object.

        Raises:
            ObjectNotFound: If the object does not exist
            TransientProviderError: For network/service errors
        """
        ...

    def update(
        self,
        name: str,
        metadata: ObjectMetadata,
        *,
        predefined_acl: Optional[str] = None,
    ) -> None:
        """
        Apply metadata (and optionally an ACL) to an existing object.

        Raises:
            ObjectNotFound: If the object does not exist
            TransientProviderError: For network/service errors
        """
        ...

    def copy(
        self,
        name: str,
        destination: Bucket,
        destination_name: str,
        metadata: ObjectMetadata = ObjectMetadata(),
        *,
        predefined_acl: Optional[str] = None,
    ) -> None:
        """
        Server-side copy of object name into another (or the same) bucket.

        Raises:
            ObjectNotFound: If the source object does not exist
            TransientProviderError: For network/service errors
        """
        ...

    def list_names(self, prefix: str = "") -> Iterator[str]:
        """Iterate over all object names starting with prefix (paged)."""
        ...

    def signed_url(self, name: str, expiration: int, *, method: str = "GET") -> str:
        """
        Create a time-limited signed URL.

        Args:
            name: Object name
            expiration: Expiry as a Unix timestamp
            method: HTTP method the URL is valid for
        """
        ...


@runtime_checkable
class BucketClient(Protocol):
    """Protocol for an authenticated client handing out bucket handles."""

    def bucket(self, name: str) -> Bucket:
        ...


@runtime_checkable
class SourceLocatable(Protocol):
    """
    Capability of a storage whose objects live in a bucket.

    Targets use it to copy server-side instead of streaming bytes through
    the process, and to detect the one-bucket setup.
    """

    @property
    def bucket_name(self) -> str:
        ...

    @property
    def key_prefix(self) -> str:
        ...

    def source_key(self, sha1: str) -> str:
        """Object key holding the content with the given SHA1."""
        ...
