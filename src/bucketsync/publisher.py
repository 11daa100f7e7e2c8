"""
Resource publishing and collection reconciliation.

A BucketTarget makes resources publicly reachable from a bucket. Depending on
where the content lives it moves no data (one-bucket setup), copies objects
server-side, or streams them through the process with optional gzip
transcoding. Collection publishing reconciles the target bucket against the
current collection members and removes what no longer belongs there.
"""
from __future__ import annotations

import importlib
import inspect
import logging
import time
import zlib
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Callable, List, Mapping, Optional, Set, Tuple, Union

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)
from tenacity.wait import wait_base

from .catalog import Collection
from .errors import (
    BucketSyncError,
    ConfigurationError,
    MetadataUpdateError,
    ObjectNotFound,
    PreconditionViolation,
    StorageAccessError,
    TransientProviderError,
)
from .messages import SEVERITY_ERROR, SEVERITY_WARNING, MessageCollector
from .models import Resource, StorageObject, TargetOptions, parse_options
from .storage.base import PUBLIC_CACHE_CONTROL, PUBLIC_READ, Bucket, BucketClient, ObjectMetadata, SourceLocatable
from .storage.keys import is_storage_key, publication_key, relative_publication_path, storage_key
from .transcoding import gzip_to_file, scoped_temporary_file
from .uris import append_signature, render_persistent_resource_uri, static_resource_uri

__all__ = ["BucketTarget", "PublishReport"]

logger = logging.getLogger(__name__)

Publishable = Union[Resource, StorageObject]


@dataclass
class PublishReport:
    """
    Outcome of one collection publishing pass.

    Attributes:
        published: Objects uploaded or copied
        skipped: Objects already present in the target
        failed: Objects that could not be published (recorded, not raised)
        removed: Obsolete objects deleted from the target
        failures: (sha1, filename) of every failed object, for retrying later
    """
    published: int = 0
    skipped: int = 0
    failed: int = 0
    removed: int = 0
    failures: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0


class BucketTarget:
    """
    Publication target backed by one bucket.

    Args:
        name: Target name (used in messages)
        options: Target options (mapping or TargetOptions)
        client: Bucket client used for all remote calls
        messages: Collector for non-fatal failures (a private one if None)
        collection_lookup: Resolves a collection name, used when an operation
            is called without a collection
        temporary_directory: Directory for gzip staging files
        metadata_retry_wait: tenacity wait strategy between metadata update
            attempts in the one-bucket setup
        clock: Returns the current Unix time (for signature expiry)

    Raises:
        ConfigurationError: On unknown or invalid options, or an unresolvable
            custom base URI method
    """

    METADATA_UPDATE_MAX_RETRIES = 10

    def __init__(
        self,
        name: str,
        options: Union[TargetOptions, Mapping[str, Any], None],
        *,
        client: BucketClient,
        messages: Optional[MessageCollector] = None,
        collection_lookup: Optional[Callable[[str], Collection]] = None,
        temporary_directory: Optional[str] = None,
        metadata_retry_wait: Optional[wait_base] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._name = name
        self._options = parse_options(TargetOptions, name, options, "target")
        self._client = client
        self.messages = messages if messages is not None else MessageCollector()
        self.collection_lookup = collection_lookup
        self._temporary_directory = temporary_directory
        self._metadata_retry_wait = metadata_retry_wait or wait_random_exponential(multiplier=0.05, max=5)
        self._clock = clock
        self._bucket: Optional[Bucket] = None

        # Snapshot of the target keys, only set while publish_collection runs
        self.existing_objects: Optional[Set[str]] = None

        self._base_uri = self._options.base_uri
        if self._options.custom_base_uri_method is not None:
            self._base_uri = self._call_custom_base_uri_method()

    @property
    def name(self) -> str:
        return self._name

    @property
    def options(self) -> TargetOptions:
        return self._options

    @property
    def bucket_name(self) -> str:
        return self._options.bucket

    @property
    def key_prefix(self) -> str:
        return self._options.key_prefix

    @property
    def base_uri(self) -> Optional[str]:
        return self._base_uri

    @property
    def cors_allow_origin(self) -> str:
        return self._options.cors_allow_origin

    @property
    def bucket(self) -> Bucket:
        """Bucket handle, created on first use."""
        if self._bucket is None:
            self._bucket = self._client.bucket(self.bucket_name)
        return self._bucket

    def _call_custom_base_uri_method(self) -> Optional[str]:
        hook = self._options.custom_base_uri_method
        module_name, _, attribute = hook.object_name.rpartition(".")
        try:
            if not module_name:
                raise ImportError(f"{hook.object_name} is not a dotted import path")
            obj = getattr(importlib.import_module(module_name), attribute)
        except (ImportError, AttributeError) as e:
            raise ConfigurationError(
                f'Unknown object "{hook.object_name}" defined as custom base URI method in the configuration '
                f'of the "{self._name}" resource target. Please check your settings.'
            ) from e

        if inspect.isclass(obj):
            obj = obj()
        method = getattr(obj, hook.method_name, None)
        if not callable(method):
            raise ConfigurationError(
                f'Unknown method "{hook.object_name}.{hook.method_name}" defined as custom base URI method '
                f'in the configuration of the "{self._name}" resource target. Please check your settings.'
            )

        base_uri = method({
            "targetClass": f"{type(self).__module__}.{type(self).__qualname__}",
            "bucketName": self.bucket_name,
            "keyPrefix": self.key_prefix,
            "baseUri": self._base_uri or "",
            "persistentResourceUriEnableSigning": self._options.persistent_resource_uris.enable_signing,
        })
        logger.debug(f'Custom base URI method of target "{self._name}" returned {base_uri!r}')
        return base_uri or None

    def is_gzip_eligible(self, media_type: str) -> bool:
        return media_type in self._options.gzip_compression_media_types

    @staticmethod
    def _source_of(collection: Collection) -> Optional[SourceLocatable]:
        storage = collection.storage
        return storage if isinstance(storage, SourceLocatable) else None

    def is_one_bucket_setup(self, collection: Collection) -> bool:
        """True if the collection's storage keeps its objects in this very bucket and prefix."""
        source = self._source_of(collection)
        return (
            source is not None
            and source.bucket_name == self.bucket_name
            and source.key_prefix == self.key_prefix
        )

    def _resolve_collection(self, resource: Resource, collection: Optional[Collection]) -> Collection:
        if collection is not None:
            return collection
        if self.collection_lookup is None:
            raise ConfigurationError(
                f'Target "{self._name}" needs the collection of resource {resource.sha1}, '
                f"but no collection lookup is configured."
            )
        return self.collection_lookup(resource.collection_name)

    def _check_distinct(self, source: Optional[SourceLocatable], item: Publishable, target_key: str,
                        collection: Collection) -> None:
        if source is None:
            return
        if source.bucket_name == self.bucket_name and source.source_key(item.sha1) == target_key:
            raise PreconditionViolation(
                f"Could not publish resource with SHA1 hash {item.sha1} of collection {collection.name} "
                f'because the source and target object are both "{target_key}" in bucket "{self.bucket_name}". '
                f"Either choose a different bucket or at least key prefix for the target."
            )

    def publish_resource(self, resource: Resource, collection: Collection) -> bool:
        """
        Publish one resource.

        Args:
            resource: Resource to publish
            collection: Collection the resource belongs to

        Returns:
            True if the resource is published, False if a failure was
            recorded in the message collector

        Raises:
            PreconditionViolation: If source and destination are the same object
            TransientProviderError: If the one-bucket metadata update keeps failing
            StorageAccessError: If the stored content cannot be read
        """
        source = self._source_of(collection)
        if self.is_one_bucket_setup(collection):
            self._publish_in_place(source, resource)
            return True

        target_key = publication_key(self.key_prefix, resource)
        self._check_distinct(source, resource, target_key, collection)
        return self._transfer(
            resource, collection, source, target_key,
            lambda: collection.storage.get_stream_by_resource(resource),
        )

    def _publish_in_place(self, source: SourceLocatable, resource: Resource) -> None:
        key = source.source_key(resource.sha1)
        metadata = ObjectMetadata(content_type=resource.media_type, cache_control=PUBLIC_CACHE_CONTROL)
        retrying = Retrying(
            stop=stop_after_attempt(self.METADATA_UPDATE_MAX_RETRIES + 1),
            wait=self._metadata_retry_wait,
            retry=retry_if_exception_type(TransientProviderError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                self.bucket.update(key, metadata, predefined_acl=PUBLIC_READ)
        logger.debug(f'Made object "{key}" in bucket "{self.bucket_name}" publicly readable')

    def _transfer(
        self,
        item: Publishable,
        collection: Collection,
        source: Optional[SourceLocatable],
        target_key: str,
        open_stream: Callable[[], Optional[BinaryIO]],
    ) -> bool:
        if source is not None and not self.is_gzip_eligible(item.media_type):
            return self._copy_object(source, item, collection, target_key)

        stream = open_stream()
        if stream is None:
            self.messages.append(
                f"Could not publish resource with SHA1 hash {item.sha1} of collection {collection.name} "
                f"because there seems to be no corresponding data in the storage.",
                SEVERITY_ERROR, 1446721810,
            )
            return False
        return self.publish_file(stream, relative_publication_path(item), item)

    def _copy_object(self, source: SourceLocatable, item: Publishable, collection: Collection,
                     target_key: str) -> bool:
        source_bucket = self._client.bucket(source.bucket_name)
        try:
            source_bucket.copy(
                source.source_key(item.sha1),
                self.bucket,
                target_key,
                ObjectMetadata(content_type=item.media_type, cache_control=PUBLIC_CACHE_CONTROL),
                predefined_acl=PUBLIC_READ,
            )
        except (ObjectNotFound, TransientProviderError, ConfigurationError) as e:
            self.messages.append(
                f"Could not copy resource with SHA1 hash {item.sha1} of collection {collection.name} "
                f"from bucket {source.bucket_name} to {self.bucket_name}: {e}",
                SEVERITY_ERROR, 1446721791,
            )
            return False
        logger.debug(
            f'Successfully published resource as object "{target_key}" (SHA1: {item.sha1}) by copying '
            f'from bucket "{source.bucket_name}" to bucket "{self.bucket_name}"'
        )
        return True

    def publish_file(self, source_stream: BinaryIO, relative_key: str, metadata: Publishable) -> bool:
        """
        Upload a stream as a public object, gzip-compressed when eligible.

        The source stream is closed and any temporary file removed on
        every exit path.

        Args:
            source_stream: Content to publish
            relative_key: Object key relative to the key prefix
            metadata: Resource or storage object providing media type and SHA1

        Returns:
            True on success, False if the upload failed (recorded as a warning)
        """
        object_name = f"{self.key_prefix}{relative_key}"
        content_encoding = None
        stream = source_stream

        with ExitStack() as stack:
            stack.callback(source_stream.close)

            if self.is_gzip_eligible(metadata.media_type):
                try:
                    temporary_path = stack.enter_context(
                        scoped_temporary_file(self._temporary_directory, suffix=".gz")
                    )
                    gzip_to_file(source_stream, temporary_path, self._options.gzip_compression_level)
                    stream = stack.enter_context(open(temporary_path, "rb"))
                    content_encoding = "gzip"
                    logger.debug(
                        f'Converted resource data of object "{object_name}" in bucket "{self.bucket_name}" '
                        f'with SHA1 hash "{metadata.sha1}" to GZIP with level {self._options.gzip_compression_level}.'
                    )
                except (OSError, ValueError, zlib.error) as e:
                    # Falls back to publishing the uncompressed content
                    self.messages.append(
                        f'Failed compressing resource as object "{object_name}" in bucket "{self.bucket_name}" '
                        f'with SHA1 hash "{metadata.sha1}": {e}',
                        SEVERITY_WARNING, 1520257344878,
                    )
                    if source_stream.seekable():
                        source_stream.seek(0)
                    stream = source_stream

            upload_metadata = ObjectMetadata(
                content_type=metadata.media_type,
                cache_control=PUBLIC_CACHE_CONTROL,
                content_encoding=content_encoding,
            )
            try:
                self.bucket.upload(stream, object_name, upload_metadata, predefined_acl=PUBLIC_READ)
            except (BucketSyncError, OSError) as e:
                self.messages.append(
                    f'Failed publishing resource as object "{object_name}" in bucket "{self.bucket_name}" '
                    f'with SHA1 hash "{metadata.sha1}": {e}',
                    SEVERITY_WARNING, 1506847965352,
                )
                return False

        logger.debug(
            f'Successfully published resource as object "{object_name}" in bucket "{self.bucket_name}" '
            f'with SHA1 hash "{metadata.sha1}"'
        )
        return True

    def unpublish_resource(self, resource: Resource, collection: Optional[Collection] = None) -> None:
        """Remove the published object of a resource; absent objects are ignored."""
        collection = self._resolve_collection(resource, collection)
        if self.is_one_bucket_setup(collection):
            # Deleting the storage object already removed the publication
            return

        key = publication_key(self.key_prefix, resource)
        try:
            self.bucket.delete(key)
            logger.debug(
                f'Successfully unpublished resource as object "{key}" (SHA1: {resource.sha1}) '
                f'from bucket "{self.bucket_name}"'
            )
        except ObjectNotFound:
            pass

    def publish_collection(self, collection: Collection) -> PublishReport:
        """
        Reconcile the target bucket with the members of a collection.

        Lists the target keys once, publishes every member that is missing,
        then deletes the keys no member maps to. Per-object failures are
        recorded and counted, never raised.

        Returns:
            Counts of published, skipped, failed and removed objects
        """
        report = PublishReport()
        if self.is_one_bucket_setup(collection):
            logger.debug(f'Collection "{collection.name}" is served from its storage bucket; nothing to publish')
            return report

        source = self._source_of(collection)
        self.existing_objects = set(self.bucket.list_names(self.key_prefix))
        try:
            obsolete = set(self.existing_objects)
            logger.info(f'Found {len(self.existing_objects)} existing objects in target bucket "{self.bucket_name}".')

            for obj in collection.get_objects():
                target_key = publication_key(self.key_prefix, obj)
                obsolete.discard(target_key)

                if source is not None and target_key in self.existing_objects:
                    logger.debug(f'Skipping object "{target_key}" because it already exists in bucket "{self.bucket_name}"')
                    report.skipped += 1
                    continue

                if self._publish_member(obj, collection, source, target_key):
                    report.published += 1
                else:
                    report.failed += 1
                    report.failures.append((obj.sha1, obj.filename))

            if source is not None and source.bucket_name == self.bucket_name:
                # Content objects of a storage sharing this bucket are never obsolete
                obsolete = {key for key in obsolete if not is_storage_key(source.key_prefix, key)}

            logger.info(f'Removing {len(obsolete)} obsolete objects from target bucket "{self.bucket_name}".')
            for key in sorted(obsolete):
                try:
                    self.bucket.delete(key)
                    report.removed += 1
                except ObjectNotFound:
                    pass
                except TransientProviderError as e:
                    self.messages.append(
                        f'Could not remove obsolete object "{key}" from bucket "{self.bucket_name}": {e}',
                        SEVERITY_WARNING,
                    )
        finally:
            self.existing_objects = None

        logger.info(
            f'Published collection "{collection.name}" to bucket "{self.bucket_name}": '
            f"{report.published} published, {report.skipped} skipped, "
            f"{report.failed} failed, {report.removed} removed"
        )
        return report

    def _publish_member(self, obj: StorageObject, collection: Collection,
                        source: Optional[SourceLocatable], target_key: str) -> bool:
        try:
            self._check_distinct(source, obj, target_key, collection)
            return self._transfer(obj, collection, source, target_key, obj.open_stream)
        except (PreconditionViolation, StorageAccessError) as e:
            self.messages.append(str(e), SEVERITY_ERROR)
            return False

    def update_resource_metadata(self, resource: Resource, collection: Optional[Collection] = None) -> None:
        """
        Re-apply the content type to the published object of a resource.

        Raises:
            MetadataUpdateError: If the object is absent or the update fails
        """
        collection = self._resolve_collection(resource, collection)
        if self.is_one_bucket_setup(collection):
            key = self._source_of(collection).source_key(resource.sha1)
        else:
            key = publication_key(self.key_prefix, resource)

        try:
            self.bucket.update(key, ObjectMetadata(content_type=resource.media_type))
        except (ObjectNotFound, TransientProviderError) as e:
            raise MetadataUpdateError(
                f'Could not update the metadata of object "{key}" in bucket "{self.bucket_name}" '
                f"for resource {resource.sha1} ({resource.filename}): {e}",
                sha1=resource.sha1,
                filename=resource.filename,
            ) from e
        logger.debug(f'Updated content type of object "{key}" to {resource.media_type}')

    def get_public_persistent_resource_uri(self, resource: Resource) -> str:
        """
        Render the public URI of a persistent resource.

        With signing enabled, the query string of a GET URL signed for the
        stored object "{keyPrefix}{sha1}" is appended.
        """
        uri_options = self._options.persistent_resource_uris
        uri = render_persistent_resource_uri(
            resource,
            pattern=uri_options.pattern,
            base_uri=self._base_uri,
            bucket_name=self.bucket_name,
            key_prefix=self.key_prefix,
        )
        if uri_options.enable_signing:
            expiration = int(self._clock()) + uri_options.signature_lifetime
            signed_url = self.bucket.signed_url(storage_key(self.key_prefix, resource.sha1), expiration, method="GET")
            uri = append_signature(uri, signed_url)
        return uri

    def get_public_static_resource_uri(self, relative_path: str) -> str:
        return static_resource_uri(self.bucket_name, self.key_prefix, relative_path)

    def __repr__(self) -> str:
        return f"BucketTarget({self._name!r}, bucket={self.bucket_name!r}, key_prefix={self.key_prefix!r})"
