# Fake implementations for testing

from .fake_bucket import FakeBucket, FakeBucketClient, StoredObject

__all__ = ["FakeBucket", "FakeBucketClient", "StoredObject"]
