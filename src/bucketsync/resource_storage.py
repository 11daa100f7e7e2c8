"""
Content-addressed resource storage in a cloud bucket.

Every distinct content is stored exactly once, under "{keyPrefix}{sha1}".
Imports stage the content in a scoped temporary file, hash it and upload it
only when no object with that hash exists yet.
"""
from __future__ import annotations

import logging
import shutil
from pathlib import Path, PurePath
from typing import Any, BinaryIO, Callable, Iterable, Iterator, Mapping, Optional, Union

from .catalog import ResourceCatalog
from .errors import ObjectNotFound, ResourceImportError, StorageAccessError, TransientProviderError
from .hashing import CHUNK_SIZE, digest_file
from .models import Resource, StorageObject, StorageOptions, UploadDescriptor, parse_options
from .storage.base import Bucket, BucketClient, ObjectMetadata, SourceLocatable
from .storage.keys import storage_key
from .transcoding import scoped_temporary_file

__all__ = ["BucketStorage"]

logger = logging.getLogger(__name__)


class BucketStorage(SourceLocatable):
    """
    Storage keeping resource content in one bucket.

    Args:
        name: Storage name (used in messages)
        options: Storage options (mapping or StorageOptions)
        client: Bucket client used for all remote calls
        catalog: Resource catalog for collection enumeration
        temporary_directory: Directory for staging files (system default if None)

    Raises:
        ConfigurationError: On unknown or invalid options
    """

    def __init__(
        self,
        name: str,
        options: Union[StorageOptions, Mapping[str, Any], None],
        *,
        client: BucketClient,
        catalog: ResourceCatalog,
        temporary_directory: Optional[str] = None,
    ) -> None:
        self._name = name
        self._options = parse_options(StorageOptions, name, options, "storage")
        self._client = client
        self._catalog = catalog
        self._temporary_directory = temporary_directory
        self._bucket: Optional[Bucket] = None
        # Names of the collections using this storage; wired by ResourceManager
        self.collection_names: Callable[[], Iterable[str]] = lambda: ()

    @property
    def name(self) -> str:
        return self._name

    @property
    def bucket_name(self) -> str:
        return self._options.bucket

    @property
    def key_prefix(self) -> str:
        return self._options.key_prefix

    @property
    def bucket(self) -> Bucket:
        """Bucket handle, created on first use."""
        if self._bucket is None:
            self._bucket = self._client.bucket(self.bucket_name)
        return self._bucket

    def source_key(self, sha1: str) -> str:
        return storage_key(self.key_prefix, sha1)

    def import_resource(
        self,
        source: Union[BinaryIO, str, Path],
        collection_name: str,
        filename: Optional[str] = None,
    ) -> Resource:
        """
        Import content from a stream or a local file.

        Args:
            source: Readable binary stream, or path of a local file
            collection_name: Collection the new resource belongs to
            filename: Resource filename (basename of a path source, else the SHA1)

        Returns:
            The imported resource

        Raises:
            ResourceImportError: If the content cannot be staged
            BucketNotFound: If the bucket does not exist
            TransientProviderError: For network/service errors
        """
        with scoped_temporary_file(self._temporary_directory) as temporary_path:
            try:
                if isinstance(source, (str, Path)):
                    shutil.copyfile(source, temporary_path)
                    filename = filename or PurePath(source).name
                else:
                    with open(temporary_path, "wb") as out:
                        shutil.copyfileobj(source, out, CHUNK_SIZE)
            except OSError as e:
                raise ResourceImportError(
                    f"Could not copy the content of {source!r} to the temporary file {temporary_path}: {e}"
                ) from e
            return self._import_temporary_file(temporary_path, collection_name, filename)

    def import_resource_from_content(
        self,
        content: bytes,
        collection_name: str,
        filename: Optional[str] = None,
    ) -> Resource:
        """Import in-memory content; the filename defaults to the SHA1."""
        with scoped_temporary_file(self._temporary_directory) as temporary_path:
            try:
                temporary_path.write_bytes(content)
            except OSError as e:
                raise ResourceImportError(f"Could not write content to the temporary file {temporary_path}: {e}") from e
            return self._import_temporary_file(temporary_path, collection_name, filename)

    def import_uploaded_resource(
        self,
        upload: Union[UploadDescriptor, Mapping[str, str]],
        collection_name: str,
    ) -> Resource:
        """
        Import a file received through an HTTP upload.

        The uploaded file is moved (not copied) to a private temporary path
        before hashing, so the web server's file is gone afterwards.

        Args:
            upload: UploadDescriptor, or a mapping with "name" and "tmp_name"
            collection_name: Collection the new resource belongs to

        Raises:
            ResourceImportError: If the uploaded file is missing or cannot be moved
        """
        if isinstance(upload, Mapping):
            upload = UploadDescriptor(name=upload.get("name", ""), tmp_name=upload.get("tmp_name", ""))

        source = Path(upload.tmp_name) if upload.tmp_name else None
        if source is None or not source.is_file():
            raise ResourceImportError(
                f'The temporary file "{upload.tmp_name}" of the file upload does not exist (anymore).'
            )

        original_filename = PurePath(upload.name).name or None
        with scoped_temporary_file(self._temporary_directory) as temporary_path:
            try:
                shutil.move(str(source), str(temporary_path))
            except OSError as e:
                raise ResourceImportError(
                    f'The uploaded file "{source}" could not be moved to the temporary location '
                    f'"{temporary_path}": {e}'
                ) from e
            return self._import_temporary_file(temporary_path, collection_name, original_filename)

    def _import_temporary_file(self, path: Path, collection_name: str, filename: Optional[str]) -> Resource:
        digest = digest_file(path)
        resource = Resource(
            sha1=digest.sha1,
            md5=digest.md5,
            filename=filename or digest.sha1,
            file_size=digest.size,
            collection_name=collection_name,
        )
        key = self.source_key(digest.sha1)

        if self.bucket.exists(key):
            logger.info(
                f'Did not import resource as object "{key}" into bucket "{self.bucket_name}" '
                f"because that object already existed."
            )
            return resource

        with open(path, "rb") as f:
            self.bucket.upload(f, key, ObjectMetadata(content_type=resource.media_type))
        logger.info(
            f'Successfully imported resource as object "{key}" into bucket "{self.bucket_name}" '
            f'with MD5 hash "{resource.md5}"'
        )
        return resource

    def delete_resource(self, resource: Resource) -> bool:
        """Delete the stored content of a resource. An absent object counts as deleted."""
        key = self.source_key(resource.sha1)
        try:
            self.bucket.delete(key)
            logger.debug(f'Deleted object "{key}" from bucket "{self.bucket_name}"')
        except ObjectNotFound:
            logger.debug(f'Object "{key}" was already absent from bucket "{self.bucket_name}"')
        return True

    def _open(self, key: str, description: str) -> Optional[BinaryIO]:
        try:
            return self.bucket.download(key)
        except ObjectNotFound:
            return None
        except TransientProviderError as e:
            message = f"Could not retrieve stream for {description} (gs://{self.bucket_name}/{key}). {e}"
            logger.error(message)
            raise StorageAccessError(message, bucket=self.bucket_name, key=key) from e

    def get_stream_by_resource(self, resource: Resource) -> Optional[BinaryIO]:
        """
        Open the stored content of a resource.

        Returns:
            Readable stream, or None if no object exists for the resource

        Raises:
            StorageAccessError: If the object exists but cannot be read
        """
        return self._open(self.source_key(resource.sha1), f"resource {resource.filename}")

    def get_stream_by_resource_path(self, relative_path: str) -> Optional[BinaryIO]:
        """Open an arbitrary object relative to the key prefix; None if absent."""
        key = f"{self.key_prefix}{relative_path.lstrip('/')}"
        return self._open(key, "resource")

    def get_objects_by_collection(self, collection_name: str) -> Iterator[StorageObject]:
        """
        Enumerate the stored objects of a collection.

        Lazy on both levels: catalog entries are pulled one by one and each
        content stream is downloaded only when open_stream() is called.
        """
        for resource in self._catalog.list_by_collection(collection_name):
            yield StorageObject.from_resource(resource, lambda r=resource: self.get_stream_by_resource(r))

    def get_objects(self) -> Iterator[StorageObject]:
        """Enumerate the stored objects of every collection using this storage."""
        for collection_name in self.collection_names():
            yield from self.get_objects_by_collection(collection_name)

    def list_object_keys(self) -> Iterator[str]:
        """Iterate over all object keys under the key prefix."""
        return self.bucket.list_names(self.key_prefix)

    def __repr__(self) -> str:
        return f"BucketStorage({self._name!r}, bucket={self.bucket_name!r}, key_prefix={self.key_prefix!r})"
