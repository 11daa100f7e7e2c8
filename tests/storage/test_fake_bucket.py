"""
Tests for the in-memory bucket client.

The fake backs most of the test suite and the "memory" client of the CLI,
so it has to honour the same error contract as the GCS adapter.
"""
from __future__ import annotations

from io import BytesIO

import pytest

from bucketsync.errors import BucketNotFound, ObjectNotFound, TransientProviderError
from bucketsync.storage.base import PUBLIC_READ, Bucket, BucketClient, ObjectMetadata
from bucketsync.storage.fakes import FakeBucket, FakeBucketClient


@pytest.fixture
def fake():
    return FakeBucketClient()


class TestFakeBucketProtocols:

    def test_implements_protocols(self, fake):
        assert isinstance(fake, BucketClient)
        assert isinstance(fake.bucket("b"), Bucket)

    def test_bucket_handles_share_state(self, fake):
        fake.bucket("b").upload(b"data", "k")
        assert fake.bucket("b").exists("k")
        assert not fake.bucket("other").exists("k")


class TestFakeBucketObjects:

    def test_upload_bytes_and_stream(self, fake):
        bucket = fake.bucket("b")
        bucket.upload(b"one", "k1", ObjectMetadata(content_type="text/plain"))
        bucket.upload(BytesIO(b"two"), "k2", predefined_acl=PUBLIC_READ)

        objects = fake.objects("b")
        assert objects["k1"].data == b"one"
        assert objects["k1"].metadata.content_type == "text/plain"
        assert objects["k1"].acl is None
        assert objects["k2"].data == b"two"
        assert objects["k2"].acl == PUBLIC_READ

    def test_upload_overwrites(self, fake):
        bucket = fake.bucket("b")
        bucket.upload(b"old", "k")
        bucket.upload(b"new", "k")
        assert fake.objects("b")["k"].data == b"new"

    def test_download(self, fake):
        fake.put("b", "k", b"content")
        assert fake.bucket("b").download("k").read() == b"content"

    def test_download_missing_raises(self, fake):
        with pytest.raises(ObjectNotFound) as exc_info:
            fake.bucket("b").download("missing")
        assert exc_info.value.bucket == "b"
        assert exc_info.value.key == "missing"

    def test_delete(self, fake):
        fake.put("b", "k", b"content")
        fake.bucket("b").delete("k")
        assert "k" not in fake.objects("b")
        with pytest.raises(ObjectNotFound):
            fake.bucket("b").delete("k")

    def test_update_merges_metadata(self, fake):
        fake.put("b", "k", b"x", ObjectMetadata(content_type="text/plain", content_encoding="gzip"))
        fake.bucket("b").update("k", ObjectMetadata(content_type="text/css", cache_control="no-cache"),
                                predefined_acl=PUBLIC_READ)
        stored = fake.objects("b")["k"]
        assert stored.metadata == ObjectMetadata(
            content_type="text/css", cache_control="no-cache", content_encoding="gzip"
        )
        assert stored.acl == PUBLIC_READ

    def test_update_missing_raises(self, fake):
        with pytest.raises(ObjectNotFound):
            fake.bucket("b").update("k", ObjectMetadata(content_type="text/css"))

    def test_copy_between_buckets(self, fake):
        fake.put("src", "k", b"payload", ObjectMetadata(content_type="image/png"))
        fake.bucket("src").copy("k", fake.bucket("dst"), "published/k",
                                ObjectMetadata(cache_control="public"), predefined_acl=PUBLIC_READ)
        copied = fake.objects("dst")["published/k"]
        assert copied.data == b"payload"
        assert copied.metadata.content_type == "image/png"
        assert copied.metadata.cache_control == "public"
        assert copied.acl == PUBLIC_READ
        assert ("copy", "src", "k") in fake.calls

    def test_copy_missing_source_raises(self, fake):
        with pytest.raises(ObjectNotFound):
            fake.bucket("src").copy("missing", fake.bucket("dst"), "k")

    def test_list_names_sorted_by_prefix(self, fake):
        for key in ("p/b", "p/a", "q/c"):
            fake.put("b", key, b"")
        assert list(fake.bucket("b").list_names("p/")) == ["p/a", "p/b"]
        assert list(fake.bucket("b").list_names()) == ["p/a", "p/b", "q/c"]

    def test_signed_url(self, fake):
        url = fake.bucket("b").signed_url("dir/my file", 1700000000)
        assert url.startswith("https://storage.example.invalid/b/dir/my%20file?")
        assert "X-Goog-Expires=1700000000" in url
        assert "X-Goog-Method=GET" in url


class TestFakeBucketFailures:

    def test_missing_bucket(self, fake):
        fake.missing_buckets.add("gone")
        bucket = fake.bucket("gone")
        with pytest.raises(BucketNotFound):
            bucket.upload(b"x", "k")
        with pytest.raises(BucketNotFound):
            list(bucket.list_names())
        assert bucket.exists("k") is False

    def test_injected_failure_is_consumed(self, fake):
        fake.put("b", "k", b"x")
        fake.inject_failure("update", "k", TransientProviderError("503"), times=2)
        bucket = fake.bucket("b")

        for _ in range(2):
            with pytest.raises(TransientProviderError):
                bucket.update("k", ObjectMetadata(content_type="text/plain"))
        bucket.update("k", ObjectMetadata(content_type="text/plain"))

        assert fake.count("update") == 3

    def test_clear(self, fake):
        fake.put("b", "k", b"x")
        fake.bucket("b").exists("k")
        fake.missing_buckets.add("gone")
        fake.clear()
        assert fake.objects("b") == {}
        assert fake.calls == []
        assert fake.missing_buckets == set()

    def test_copy_into_foreign_bucket_type_rejected(self, fake):
        fake.put("src", "k", b"x")
        with pytest.raises(TypeError):
            fake.bucket("src").copy("k", object(), "k")  # type: ignore[arg-type]

    def test_fake_bucket_name(self, fake):
        assert isinstance(fake.bucket("b"), FakeBucket)
        assert fake.bucket("b").name == "b"
