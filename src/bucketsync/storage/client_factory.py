"""
Bucket client factory with implementation switching.

Provides a single factory function that creates the BucketClient selected by
the settings. This allows dry runs against the in-memory client without
changing call sites.
"""
from __future__ import annotations

from ..errors import ConfigurationError
from ..settings import Settings
from .base import BucketClient


def make_bucket_client(settings: Settings) -> BucketClient:
    """
    Create a bucket client implementation based on settings.

    Args:
        settings: Client configuration

    Returns:
        Bucket client implementation

    Implementations (BUCKETSYNC_BUCKET_CLIENT):
        - "gcs" (default): GcsBucketClient (google-cloud-storage)
        - "memory": FakeBucketClient (in-memory, nothing leaves the process)

    Examples:
        >>> client = make_bucket_client(Settings(client_impl="memory"))
        >>> client.bucket("assets").exists("abc")
        False

    Raises:
        ConfigurationError: If client_impl names an unknown implementation
    """
    impl_type = settings.client_impl

    if impl_type == "gcs":
        from .gcs import GcsBucketClient
        return GcsBucketClient(settings=settings)
    elif impl_type == "memory":
        from .fakes import FakeBucketClient
        return FakeBucketClient()
    else:
        raise ConfigurationError(
            f"Unknown bucket client implementation: {impl_type}. "
            f"Supported values: gcs, memory"
        )


__all__ = ["make_bucket_client"]
