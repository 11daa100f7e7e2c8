"""
Error classes for bucketsync.

Provides a clear taxonomy of errors that can occur while importing, publishing
and maintaining resources in cloud buckets. Provider exceptions are mapped
into this hierarchy by the bucket client implementations, so the storage and
target code never needs to know which SDK is underneath.
"""
from __future__ import annotations

from typing import Optional


class BucketSyncError(Exception):
    """Base class for all bucketsync errors."""
    pass


class ConfigurationError(BucketSyncError, ValueError):
    """
    Invalid or incomplete configuration.

    Raised when:
    - An unknown option key is given to a storage or target
    - A required option (bucket name, credentials) is missing
    - A custom base URI hook cannot be resolved

    Fatal at construction time and never retried.
    """
    pass


class BucketNotFound(ConfigurationError):
    """
    The configured bucket does not exist.

    Distinct from transient upload failures: retrying will not help until
    the configuration or the bucket is fixed.
    """

    def __init__(self, message: str, bucket: Optional[str] = None):
        super().__init__(message)
        self.bucket = bucket


class ObjectNotFound(BucketSyncError):
    """
    Object absent in the bucket.

    Benign for delete (idempotent success) and get (explicit None result),
    but a hard failure where the object must pre-exist (metadata update,
    server-side copy source).
    """

    def __init__(self, message: str, bucket: Optional[str] = None, key: Optional[str] = None):
        super().__init__(message)
        self.bucket = bucket
        self.key = key


class TransientProviderError(BucketSyncError):
    """
    Network or service error reported by the cloud provider.

    Raised when:
    - Uploads, copies or metadata updates fail with a 5xx or 429
    - The connection to the provider fails or times out
    """
    pass


class PreconditionViolation(BucketSyncError):
    """
    Source and destination resolve to the identical bucket and key.

    Aborts the publish operation before anything is written.
    """
    pass


class ResourceImportError(BucketSyncError):
    """
    Staging the content of a new resource failed.

    Raised when the source stream cannot be drained, a file cannot be copied
    or an uploaded file cannot be moved to its private temporary location.
    The resource is not created.
    """
    pass


class StorageAccessError(BucketSyncError):
    """Reading an object failed for a reason other than it being absent."""

    def __init__(self, message: str, bucket: Optional[str] = None, key: Optional[str] = None):
        super().__init__(message)
        self.bucket = bucket
        self.key = key


class MetadataUpdateError(BucketSyncError):
    """
    Metadata of a published object could not be updated.

    Carries the SHA1 and filename so bulk tooling can retry the item later.
    """

    def __init__(self, message: str, sha1: Optional[str] = None, filename: Optional[str] = None):
        super().__init__(message)
        self.sha1 = sha1
        self.filename = filename


__all__ = [
    "BucketSyncError",
    "ConfigurationError",
    "BucketNotFound",
    "ObjectNotFound",
    "TransientProviderError",
    "PreconditionViolation",
    "ResourceImportError",
    "StorageAccessError",
    "MetadataUpdateError",
]
