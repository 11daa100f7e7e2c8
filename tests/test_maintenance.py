"""Tests for the maintenance operations behind the CLI."""
from __future__ import annotations

import pytest

from bucketsync.errors import BucketNotFound, StorageAccessError, TransientProviderError
from bucketsync.maintenance import (
    CONNECTION_TEST_OBJECT,
    check_connection,
    cleanup_orphans,
    find_orphans,
    repair_metadata,
    republish_collection,
)
from bucketsync.manager import ResourceManager
from bucketsync.models import Resource, ResourceConfig
from bucketsync.storage.base import ObjectMetadata

STORAGE_BUCKET = "storage-bucket"
TARGET_BUCKET = "target-bucket"

SHA1_A = "86f7e437faa5a7fce15d1ddcb9eaeaea377667b8"
SHA1_B = "e9d71f5ee7c92d6dc9e92ffdad17b8bd49418f98"
SHA1_C = "84a516841ba77a5b4648de2cd0dfcb30ea46dbb4"


@pytest.fixture
def manager(client, catalog, settings):
    config = ResourceConfig.model_validate({
        "storages": {"main": {"bucket": STORAGE_BUCKET, "keyPrefix": "persistent/"}},
        "targets": {"public": {"bucket": TARGET_BUCKET}},
        "collections": {"persistent": {"storage": "main", "target": "public"}},
    })
    return ResourceManager(config, client=client, catalog=catalog, settings=settings)


class TestCheckConnection:

    def test_connection_object_round_trip(self, client):
        progress = []
        check_connection(client, "health-bucket", progress.append)

        assert [op for op, _, _ in client.calls] == ["upload", "download", "delete"]
        assert all(key == CONNECTION_TEST_OBJECT for _, _, key in client.calls)
        assert client.objects("health-bucket") == {}
        assert len(progress) == 3

    def test_missing_bucket(self, client):
        client.missing_buckets.add("health-bucket")
        with pytest.raises(BucketNotFound):
            check_connection(client, "health-bucket")

    def test_corrupted_read_back(self, client, monkeypatch):
        from io import BytesIO
        from bucketsync.storage.fakes import FakeBucket
        monkeypatch.setattr(FakeBucket, "download", lambda self, name: BytesIO(b"garbage"))
        with pytest.raises(StorageAccessError, match="unexpected content"):
            check_connection(client, "health-bucket")


class TestRepublish:

    def test_republish_collection(self, manager, client, catalog):
        resource = Resource(sha1=SHA1_A, filename="a.png")
        client.put(STORAGE_BUCKET, f"persistent/{SHA1_A}", b"a")
        catalog.add(resource)

        report = republish_collection(manager, "persistent")

        assert report.published == 1
        assert f"{SHA1_A}/a.png" in client.objects(TARGET_BUCKET)


class TestRepairMetadata:

    def _publish(self, client, catalog, sha1, filename, collection="persistent"):
        catalog.add(Resource(sha1=sha1, filename=filename, collection_name=collection))
        client.put(TARGET_BUCKET, f"{sha1}/{filename}", b"x", ObjectMetadata(content_type="application/octet-stream"))

    def test_updates_every_object_in_sha1_order(self, manager, client, catalog):
        self._publish(client, catalog, SHA1_B, "b.css")
        self._publish(client, catalog, SHA1_A, "a.png")
        visited = []

        report = repair_metadata(manager, "persistent", progress=lambda r, e: visited.append((r.sha1, e)))

        assert report.updated == 2
        assert report.ok
        assert visited == [(SHA1_A, None), (SHA1_B, None)]
        assert report.last_sha1 == SHA1_B
        assert client.objects(TARGET_BUCKET)[f"{SHA1_B}/b.css"].metadata.content_type == "text/css"
        assert client.objects(TARGET_BUCKET)[f"{SHA1_A}/a.png"].metadata.content_type == "image/png"

    def test_failures_are_collected_and_scan_continues(self, manager, client, catalog):
        self._publish(client, catalog, SHA1_A, "a.png")
        catalog.add(Resource(sha1=SHA1_B, filename="b.png"))
        self._publish(client, catalog, SHA1_C, "c.png")
        client.inject_failure("update", f"{SHA1_A}/a.png", TransientProviderError("503"))

        report = repair_metadata(manager, "persistent")

        assert report.updated == 1
        assert report.failed == 2
        assert report.failures == [(SHA1_A, "a.png"), (SHA1_B, "b.png")]
        assert not report.ok

    def test_resume_from(self, manager, client, catalog):
        for sha1, name in ((SHA1_A, "a.png"), (SHA1_B, "b.png"), (SHA1_C, "c.png")):
            self._publish(client, catalog, sha1, name)

        report = repair_metadata(manager, "persistent", resume_from=SHA1_A)

        assert report.updated == 2
        assert client.count("update") == 2
        assert ("update", TARGET_BUCKET, f"{SHA1_C}/c.png") not in client.calls

    def test_duplicate_sha1_visited_once(self, manager, client, catalog):
        self._publish(client, catalog, SHA1_A, "a.png")
        self._publish(client, catalog, SHA1_A, "copy.png")
        report = repair_metadata(manager, "persistent")
        assert report.updated == 1

    def test_other_collections_ignored(self, manager, client, catalog):
        self._publish(client, catalog, SHA1_A, "a.png", collection="other")
        assert repair_metadata(manager, "persistent").updated == 0


class TestOrphans:

    @pytest.fixture
    def main_storage(self, manager):
        return manager.get_storage("main")

    def _seed(self, client, catalog):
        for sha1 in (SHA1_A, SHA1_B, SHA1_C):
            client.put(STORAGE_BUCKET, f"persistent/{sha1}", b"x")
        client.put(STORAGE_BUCKET, "persistent/README", b"not content")
        catalog.add(Resource(sha1=SHA1_B, filename="b.png"))

    def test_find_orphans(self, main_storage, client, catalog):
        self._seed(client, catalog)

        report = find_orphans(main_storage, catalog)

        assert report.storage == "main"
        assert report.scanned == 4
        assert report.orphans == [f"persistent/{SHA1_C}", f"persistent/{SHA1_A}"]

    def test_audit_deletes_nothing(self, main_storage, client, catalog):
        self._seed(client, catalog)
        cleanup_orphans(main_storage, catalog)
        assert len(client.objects(STORAGE_BUCKET)) == 4

    def test_export(self, main_storage, client, catalog, tmp_path):
        self._seed(client, catalog)
        export = tmp_path / "orphans.txt"

        cleanup_orphans(main_storage, catalog, export_path=export)

        assert export.read_text() == f"persistent/{SHA1_C}\npersistent/{SHA1_A}\n"
        assert len(client.objects(STORAGE_BUCKET)) == 4

    def test_delete(self, main_storage, client, catalog):
        self._seed(client, catalog)

        report = cleanup_orphans(main_storage, catalog, delete=True)

        assert report.deleted == 2
        assert report.ok
        assert sorted(client.objects(STORAGE_BUCKET)) == ["persistent/README", f"persistent/{SHA1_B}"]

    def test_delete_failures_are_counted(self, main_storage, client, catalog):
        self._seed(client, catalog)
        client.inject_failure("delete", f"persistent/{SHA1_A}", TransientProviderError("503"))

        report = cleanup_orphans(main_storage, catalog, delete=True)

        assert report.deleted == 1
        assert report.failed == 1
        assert not report.ok
