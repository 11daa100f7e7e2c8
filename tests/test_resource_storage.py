"""
Tests for the content-addressed bucket storage.

Uses the in-memory bucket client; the staging directory fixture must be
empty after every operation.
"""
from __future__ import annotations

from io import BytesIO

import pytest

from bucketsync.errors import (
    BucketNotFound,
    ConfigurationError,
    ResourceImportError,
    StorageAccessError,
    TransientProviderError,
)
from bucketsync.models import Resource, UploadDescriptor
from bucketsync.storage.base import SourceLocatable

STORAGE_BUCKET = "storage-bucket"
HELLO_SHA1 = "2aae6c35c94fcfb415dbe95f408b9ce91ee846ed"
HELLO_MD5 = "5eb63bbbe01eeed093cb22bb8f5acdc3"


class TestBucketStorageConfiguration:

    def test_properties(self, storage):
        assert isinstance(storage, SourceLocatable)
        assert storage.name == "gcsPersistentResourcesStorage"
        assert storage.bucket_name == STORAGE_BUCKET
        assert storage.key_prefix == "persistent/"
        assert storage.source_key(HELLO_SHA1) == f"persistent/{HELLO_SHA1}"

    def test_leading_slash_stripped_from_prefix(self, make_storage):
        assert make_storage(keyPrefix="/persistent/").key_prefix == "persistent/"

    def test_unknown_option_rejected(self, make_storage):
        with pytest.raises(ConfigurationError, match='unknown option "bukket"'):
            make_storage(bukket="typo")

    def test_missing_bucket_option(self, client, catalog):
        from bucketsync.resource_storage import BucketStorage
        with pytest.raises(ConfigurationError, match="gcsPersistentResourcesStorage"):
            BucketStorage("gcsPersistentResourcesStorage", {}, client=client, catalog=catalog)

    def test_no_remote_call_at_construction(self, make_storage, client):
        make_storage()
        assert client.calls == []


class TestImportResource:

    def test_import_stream(self, storage, client, staging_dir):
        resource = storage.import_resource(BytesIO(b"hello world"), "persistent", "hello.txt")

        assert resource.sha1 == HELLO_SHA1
        assert resource.md5 == HELLO_MD5
        assert resource.filename == "hello.txt"
        assert resource.file_size == 11
        assert resource.media_type == "text/plain"
        assert resource.collection_name == "persistent"

        stored = client.objects(STORAGE_BUCKET)[f"persistent/{HELLO_SHA1}"]
        assert stored.data == b"hello world"
        assert stored.metadata.content_type == "text/plain"
        assert list(staging_dir.iterdir()) == []

    def test_import_path_uses_basename(self, storage, tmp_path, staging_dir):
        source = tmp_path / "greeting.txt"
        source.write_bytes(b"hello world")

        resource = storage.import_resource(source, "persistent")

        assert resource.filename == "greeting.txt"
        assert source.exists()
        assert list(staging_dir.iterdir()) == []

    def test_filename_defaults_to_sha1(self, storage):
        resource = storage.import_resource(BytesIO(b"hello world"), "persistent")
        assert resource.filename == HELLO_SHA1
        assert resource.media_type == "application/octet-stream"

    def test_import_is_idempotent(self, storage, client):
        """Test that importing the same content twice uploads it once."""
        first = storage.import_resource(BytesIO(b"hello world"), "persistent", "a.txt")
        second = storage.import_resource_from_content(b"hello world", "persistent", "b.txt")

        assert first.sha1 == second.sha1
        assert client.count("upload") == 1
        assert list(client.objects(STORAGE_BUCKET)) == [f"persistent/{HELLO_SHA1}"]

    def test_import_empty_content(self, storage, client):
        resource = storage.import_resource_from_content(b"", "persistent", "empty.txt")
        assert resource.sha1 == "da39a3ee5e6b4b0d3255bfef95601890afd80709"
        assert resource.file_size == 0
        assert client.objects(STORAGE_BUCKET)[f"persistent/{resource.sha1}"].data == b""

    def test_missing_source_file(self, storage, tmp_path, staging_dir):
        with pytest.raises(ResourceImportError):
            storage.import_resource(tmp_path / "missing.txt", "persistent")
        assert list(staging_dir.iterdir()) == []

    def test_missing_bucket(self, storage, client, staging_dir):
        client.missing_buckets.add(STORAGE_BUCKET)
        with pytest.raises(BucketNotFound):
            storage.import_resource_from_content(b"hello world", "persistent", "a.txt")
        assert list(staging_dir.iterdir()) == []

    def test_transient_upload_failure_propagates(self, storage, client, staging_dir):
        client.inject_failure("upload", f"persistent/{HELLO_SHA1}", TransientProviderError("503"))
        with pytest.raises(TransientProviderError):
            storage.import_resource_from_content(b"hello world", "persistent", "a.txt")
        assert list(staging_dir.iterdir()) == []


class TestImportUploadedResource:

    def test_uploaded_file_is_moved(self, storage, tmp_path, staging_dir):
        uploaded = tmp_path / "php123"
        uploaded.write_bytes(b"hello world")

        resource = storage.import_uploaded_resource(
            UploadDescriptor(name="C:/Users/me/hello.txt", tmp_name=str(uploaded)), "persistent"
        )

        assert resource.sha1 == HELLO_SHA1
        assert resource.filename == "hello.txt"
        assert not uploaded.exists()
        assert list(staging_dir.iterdir()) == []

    def test_mapping_descriptor(self, storage, tmp_path):
        uploaded = tmp_path / "upload"
        uploaded.write_bytes(b"hello world")
        resource = storage.import_uploaded_resource({"name": "hello.txt", "tmp_name": str(uploaded)}, "persistent")
        assert resource.filename == "hello.txt"

    def test_missing_uploaded_file(self, storage, tmp_path):
        with pytest.raises(ResourceImportError, match="does not exist"):
            storage.import_uploaded_resource(
                UploadDescriptor(name="a.txt", tmp_name=str(tmp_path / "gone")), "persistent"
            )

    def test_empty_tmp_name(self, storage):
        with pytest.raises(ResourceImportError):
            storage.import_uploaded_resource({"name": "a.txt"}, "persistent")


class TestDeleteAndRead:

    def test_delete_is_idempotent(self, storage, client):
        resource = storage.import_resource_from_content(b"hello world", "persistent", "a.txt")
        assert storage.delete_resource(resource) is True
        assert storage.delete_resource(resource) is True
        assert client.objects(STORAGE_BUCKET) == {}

    def test_stream_by_resource(self, storage):
        resource = storage.import_resource_from_content(b"hello world", "persistent", "a.txt")
        stream = storage.get_stream_by_resource(resource)
        assert stream.read() == b"hello world"

    def test_stream_of_absent_object_is_none(self, storage):
        resource = Resource(sha1=HELLO_SHA1, filename="a.txt")
        assert storage.get_stream_by_resource(resource) is None

    def test_stream_read_failure(self, storage, client):
        client.put(STORAGE_BUCKET, f"persistent/{HELLO_SHA1}", b"hello world")
        client.inject_failure("download", f"persistent/{HELLO_SHA1}", TransientProviderError("reset"))
        with pytest.raises(StorageAccessError) as exc_info:
            storage.get_stream_by_resource(Resource(sha1=HELLO_SHA1, filename="a.txt"))
        assert exc_info.value.bucket == STORAGE_BUCKET

    def test_stream_by_path(self, storage, client):
        client.put(STORAGE_BUCKET, "persistent/Packages/site.css", b"body {}")
        assert storage.get_stream_by_resource_path("/Packages/site.css").read() == b"body {}"
        assert storage.get_stream_by_resource_path("Packages/missing.css") is None


class TestEnumeration:

    def test_objects_of_collection_are_lazy(self, storage, catalog, client):
        resource = storage.import_resource_from_content(b"hello world", "persistent", "a.txt")
        catalog.add(resource)
        client.calls.clear()

        objects = list(storage.get_objects_by_collection("persistent"))

        assert [o.sha1 for o in objects] == [HELLO_SHA1]
        assert client.count("download") == 0
        assert objects[0].open_stream().read() == b"hello world"
        assert client.count("download") == 1

    def test_get_objects_covers_wired_collections(self, storage, catalog):
        catalog.add(storage.import_resource_from_content(b"a", "persistent", "a.txt"))
        catalog.add(storage.import_resource_from_content(b"b", "other", "b.txt"))
        catalog.add(storage.import_resource_from_content(b"c", "unrelated", "c.txt"))
        storage.collection_names = lambda: ["persistent", "other"]

        assert sorted(o.filename for o in storage.get_objects()) == ["a.txt", "b.txt"]

    def test_get_objects_without_collections(self, storage):
        assert list(storage.get_objects()) == []

    def test_list_object_keys(self, storage, client):
        client.put(STORAGE_BUCKET, f"persistent/{HELLO_SHA1}", b"")
        client.put(STORAGE_BUCKET, "elsewhere/x", b"")
        assert list(storage.list_object_keys()) == [f"persistent/{HELLO_SHA1}"]
