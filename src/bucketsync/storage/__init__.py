"""Bucket access layer: protocols, key derivation and client implementations."""

from .base import PUBLIC_CACHE_CONTROL, PUBLIC_READ, Bucket, BucketClient, ObjectMetadata, SourceLocatable
from .client_factory import make_bucket_client

__all__ = [
    "Bucket",
    "BucketClient",
    "ObjectMetadata",
    "SourceLocatable",
    "PUBLIC_READ",
    "PUBLIC_CACHE_CONTROL",
    "make_bucket_client",
]
