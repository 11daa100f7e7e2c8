"""
Maintenance operations behind the command line interface.

Connectivity self-test, forced republishing, resumable metadata repair and
the orphan audit. Bulk operations never stop at the first failing object;
their reports keep the SHA1 and filename of every failure.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from .catalog import ResourceCatalog
from .errors import MetadataUpdateError, ObjectNotFound, StorageAccessError, TransientProviderError
from .manager import ResourceManager
from .models import Resource
from .publisher import PublishReport
from .resource_storage import BucketStorage
from .storage.base import BucketClient, ObjectMetadata

__all__ = [
    "CONNECTION_TEST_OBJECT",
    "RepairReport",
    "OrphanReport",
    "check_connection",
    "republish_collection",
    "repair_metadata",
    "find_orphans",
    "cleanup_orphans",
]

logger = logging.getLogger(__name__)

CONNECTION_TEST_OBJECT = "bucketsync.ConnectionTest.txt"
CONNECTION_TEST_CONTENT = b"test"


@dataclass
class RepairReport:
    """Outcome of a metadata repair scan."""
    updated: int = 0
    failed: int = 0
    failures: List[Tuple[str, str]] = field(default_factory=list)
    last_sha1: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failed == 0


@dataclass
class OrphanReport:
    """
    Outcome of an orphan audit.

    Attributes:
        storage: Name of the audited storage
        scanned: Object keys listed
        orphans: Keys of content objects no catalog entry refers to
        deleted: Orphans deleted (only with delete=True)
        failed: Orphans whose deletion failed
    """
    storage: str
    scanned: int = 0
    orphans: List[str] = field(default_factory=list)
    deleted: int = 0
    failed: int = 0

    @property
    def ok(self) -> bool:
        return self.failed == 0


def check_connection(client: BucketClient, bucket_name: str,
                     progress: Callable[[str], None] = lambda message: None) -> None:
    """
    Write, read back and delete a test object.

    Raises:
        BucketNotFound: If the bucket does not exist
        TransientProviderError: For network/service errors
        StorageAccessError: If the test object reads back with different content
    """
    bucket = client.bucket(bucket_name)

    progress(f"Writing test object into bucket ({bucket_name}) ...")
    bucket.upload(CONNECTION_TEST_CONTENT, CONNECTION_TEST_OBJECT, ObjectMetadata(content_type="text/plain"))

    progress("Retrieving test object from bucket ...")
    stream = bucket.download(CONNECTION_TEST_OBJECT)
    try:
        content = stream.read()
    finally:
        stream.close()
    if content != CONNECTION_TEST_CONTENT:
        raise StorageAccessError(
            f"Test object read back with unexpected content ({len(content)} bytes)",
            bucket=bucket_name, key=CONNECTION_TEST_OBJECT,
        )

    progress("Deleting test object from bucket ...")
    bucket.delete(CONNECTION_TEST_OBJECT)
    logger.info(f"Connection test against bucket {bucket_name} succeeded")


def republish_collection(manager: ResourceManager, collection_name: str) -> PublishReport:
    """Run a full publishing pass for one collection."""
    logger.info(f'Republishing collection "{collection_name}"')
    return manager.publish_collection(collection_name)


def repair_metadata(
    manager: ResourceManager,
    collection_name: str,
    *,
    resume_from: Optional[str] = None,
    progress: Callable[[Resource, Optional[Exception]], None] = lambda resource, error: None,
) -> RepairReport:
    """
    Re-apply the content type of every published object of a collection.

    Resources are visited by SHA1 ascending, starting at resume_from
    (inclusive); consecutive entries with the same SHA1 are visited once.

    Args:
        manager: Resource manager providing catalog and collection
        collection_name: Collection to repair
        resume_from: SHA1 to resume at, typically the first failure of a previous run
        progress: Called after each resource with the error, if any
    """
    collection = manager.get_collection(collection_name)
    report = RepairReport()
    previous_sha1 = None

    for resource in manager.catalog.iter_by_sha1(collection_name, start_from=resume_from):
        if resource.sha1 == previous_sha1:
            continue
        previous_sha1 = resource.sha1
        report.last_sha1 = resource.sha1

        try:
            collection.target.update_resource_metadata(resource, collection)
        except MetadataUpdateError as e:
            report.failed += 1
            report.failures.append((resource.sha1, resource.filename))
            logger.warning(f"Metadata repair failed for {resource.sha1} ({resource.filename}): {e}")
            progress(resource, e)
            continue
        report.updated += 1
        progress(resource, None)

    logger.info(f'Metadata repair of "{collection_name}": {report.updated} updated, {report.failed} failed')
    return report


def find_orphans(storage: BucketStorage, catalog: ResourceCatalog) -> OrphanReport:
    """
    List content objects of a storage that no catalog entry refers to.

    Only keys of the form "{keyPrefix}{sha1}" are candidates; anything else
    under the prefix is not resource content and is left alone.
    """
    candidate = re.compile(rf"^{re.escape(storage.key_prefix)}([0-9a-f]{{40}})$")
    report = OrphanReport(storage=storage.name)
    for key in storage.list_object_keys():
        report.scanned += 1
        match = candidate.match(key)
        if match and catalog.resolve(match.group(1)) is None:
            report.orphans.append(key)
    logger.info(f'Found {len(report.orphans)} orphans among {report.scanned} objects of storage "{storage.name}"')
    return report


def cleanup_orphans(
    storage: BucketStorage,
    catalog: ResourceCatalog,
    *,
    export_path: Optional[Union[str, Path]] = None,
    delete: bool = False,
) -> OrphanReport:
    """
    Audit orphans, optionally exporting their keys and deleting them.

    Without delete=True nothing is removed from the bucket.

    Args:
        storage: Storage to audit
        catalog: Catalog the storage keys are checked against
        export_path: File receiving one orphan key per line
        delete: Delete the orphans
    """
    report = find_orphans(storage, catalog)

    if export_path is not None:
        Path(export_path).write_text("".join(f"{key}\n" for key in report.orphans))
        logger.info(f"Exported {len(report.orphans)} orphan keys to {export_path}")

    if delete:
        for key in report.orphans:
            try:
                storage.bucket.delete(key)
                report.deleted += 1
            except ObjectNotFound:
                report.deleted += 1
            except TransientProviderError as e:
                report.failed += 1
                logger.warning(f'Could not delete orphan "{key}" from bucket "{storage.bucket_name}": {e}')
        logger.info(f'Deleted {report.deleted} orphans from storage "{storage.name}"')

    return report
