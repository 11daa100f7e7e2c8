"""
Fake bucket client implementation for testing and dry runs.

This implementation explicitly subclasses the Bucket and BucketClient
protocols to ensure interface changes break CI immediately, preventing
silent drift.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from io import BytesIO
from typing import BinaryIO, Dict, Iterator, List, Optional, Set, Tuple, Union
from urllib.parse import quote

from ...errors import BucketNotFound, ObjectNotFound
from ..base import Bucket, BucketClient, ObjectMetadata

__all__ = ["FakeBucketClient", "FakeBucket", "StoredObject"]


@dataclass
class StoredObject:
    """One object held by the fake: content, HTTP metadata and ACL."""
    data: bytes
    metadata: ObjectMetadata
    acl: Optional[str] = None


def _merge(current: ObjectMetadata, changes: ObjectMetadata) -> ObjectMetadata:
    updates = {f.name: getattr(changes, f.name) for f in dataclasses.fields(changes)
               if getattr(changes, f.name) is not None}
    return dataclasses.replace(current, **updates)


class FakeBucketClient(BucketClient):
    """
    In-memory bucket client for testing.

    This is a test double; not for production use.
    All buckets share one client-wide store so server-side copies between
    buckets behave like the real thing. Every operation is recorded in
    `calls` as (operation, bucket, key) for assertions.
    """

    def __init__(self) -> None:
        self._buckets: Dict[str, Dict[str, StoredObject]] = {}
        self._failures: Dict[Tuple[str, str], List[Exception]] = {}
        self.calls: List[Tuple[str, str, str]] = []
        self.missing_buckets: Set[str] = set()

    def bucket(self, name: str) -> FakeBucket:
        return FakeBucket(self, name)

    def objects(self, bucket: str) -> Dict[str, StoredObject]:
        """Objects stored in a bucket, keyed by name (test utility)."""
        return self._buckets.setdefault(bucket, {})

    def put(self, bucket: str, key: str, data: bytes, metadata: ObjectMetadata = ObjectMetadata(),
            acl: Optional[str] = None) -> None:
        """Seed an object without recording a call (test utility)."""
        self.objects(bucket)[key] = StoredObject(data=data, metadata=metadata, acl=acl)

    def inject_failure(self, operation: str, key: str, error: Exception, times: int = 1) -> None:
        """
        Make the next `times` calls of operation on key raise error.

        Args:
            operation: Operation name ("upload", "download", "exists", "delete",
                "update", "copy", "list", "sign")
            key: Object key (the prefix for "list")
            error: Exception instance to raise
            times: How many consecutive calls fail
        """
        self._failures.setdefault((operation, key), []).extend([error] * times)

    def count(self, operation: str) -> int:
        """Number of recorded calls of an operation (test utility)."""
        return sum(1 for op, _, _ in self.calls if op == operation)

    def _record(self, operation: str, bucket: str, key: str) -> None:
        self.calls.append((operation, bucket, key))
        pending = self._failures.get((operation, key))
        if pending:
            raise pending.pop(0)

    def clear(self) -> None:
        """Clear all stored data (test utility)."""
        self._buckets.clear()
        self._failures.clear()
        self.calls.clear()
        self.missing_buckets.clear()


class FakeBucket(Bucket):
    """
    In-memory bucket handle.

    This is a test double; not for production use.
    """

    def __init__(self, client: FakeBucketClient, name: str) -> None:
        self._client = client
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def _objects(self) -> Dict[str, StoredObject]:
        return self._client.objects(self._name)

    def _require(self, key: str) -> StoredObject:
        stored = None if self._name in self._client.missing_buckets else self._objects.get(key)
        if stored is None:
            raise ObjectNotFound(f"Object not found: gs://{self._name}/{key}", bucket=self._name, key=key)
        return stored

    def upload(
        self,
        source: Union[BinaryIO, bytes],
        name: str,
        metadata: ObjectMetadata = ObjectMetadata(),
        *,
        predefined_acl: Optional[str] = None,
    ) -> None:
        self._client._record("upload", self._name, name)
        if self._name in self._client.missing_buckets:
            raise BucketNotFound(f"Bucket \"{self._name}\" does not exist", bucket=self._name)
        data = source if isinstance(source, bytes) else source.read()
        self._objects[name] = StoredObject(data=data, metadata=metadata, acl=predefined_acl)

    def download(self, name: str) -> BinaryIO:
        self._client._record("download", self._name, name)
        return BytesIO(self._require(name).data)

    def exists(self, name: str) -> bool:
        self._client._record("exists", self._name, name)
        if self._name in self._client.missing_buckets:
            return False
        return name in self._objects

    def delete(self, name: str) -> None:
        self._client._record("delete", self._name, name)
        self._require(name)
        del self._objects[name]

    def update(
        self,
        name: str,
        metadata: ObjectMetadata,
        *,
        predefined_acl: Optional[str] = None,
    ) -> None:
        self._client._record("update", self._name, name)
        stored = self._require(name)
        stored.metadata = _merge(stored.metadata, metadata)
        if predefined_acl is not None:
            stored.acl = predefined_acl

    def copy(
        self,
        name: str,
        destination: Bucket,
        destination_name: str,
        metadata: ObjectMetadata = ObjectMetadata(),
        *,
        predefined_acl: Optional[str] = None,
    ) -> None:
        if not isinstance(destination, FakeBucket):
            raise TypeError(f"Cannot copy from a fake bucket into {type(destination).__name__}")
        self._client._record("copy", self._name, name)
        stored = self._require(name)
        if destination.name in self._client.missing_buckets:
            raise BucketNotFound(f"Bucket \"{destination.name}\" does not exist", bucket=destination.name)
        destination._objects[destination_name] = StoredObject(
            data=stored.data,
            metadata=_merge(stored.metadata, metadata),
            acl=predefined_acl,
        )

    def list_names(self, prefix: str = "") -> Iterator[str]:
        self._client._record("list", self._name, prefix)
        if self._name in self._client.missing_buckets:
            raise BucketNotFound(f"Bucket \"{self._name}\" does not exist", bucket=self._name)
        for key in sorted(self._objects):
            if key.startswith(prefix):
                yield key

    def signed_url(self, name: str, expiration: int, *, method: str = "GET") -> str:
        self._client._record("sign", self._name, name)
        return (
            f"https://storage.example.invalid/{self._name}/{quote(name)}"
            f"?X-Goog-Algorithm=GOOG4-RSA-SHA256&X-Goog-Expires={expiration}"
            f"&X-Goog-Method={method}&X-Goog-Signature=fake"
        )
