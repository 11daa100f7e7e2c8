"""
Resource manager wiring storages, targets and collections.

Builds the configured BucketStorage and BucketTarget instances from a
ResourceConfig, binds them into collections and offers the import, delete
and publish entry points the host application calls.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, BinaryIO, Dict, Mapping, Optional, Union

from .catalog import Collection, InMemoryResourceCatalog, MutableResourceCatalog
from .errors import ConfigurationError
from .messages import MessageCollector
from .models import Resource, ResourceConfig, UploadDescriptor
from .publisher import BucketTarget, PublishReport
from .resource_storage import BucketStorage
from .settings import Settings
from .storage.base import BucketClient

__all__ = ["ResourceManager"]

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = "persistent"


class ResourceManager:
    """
    Entry point for importing, publishing and deleting resources.

    Args:
        config: Storages, targets and collections to build
        client: Bucket client shared by all storages and targets
        catalog: Resource catalog (an empty in-memory one if None)
        settings: Client settings (only the temporary directory is used here)
        messages: Collector shared by all targets
    """

    def __init__(
        self,
        config: ResourceConfig,
        *,
        client: BucketClient,
        catalog: Optional[MutableResourceCatalog] = None,
        settings: Optional[Settings] = None,
        messages: Optional[MessageCollector] = None,
    ) -> None:
        self.config = config
        self.catalog = catalog if catalog is not None else InMemoryResourceCatalog()
        self.messages = messages if messages is not None else MessageCollector()
        temporary_directory = settings.temporary_directory if settings else None

        self.storages: Dict[str, BucketStorage] = {
            name: BucketStorage(name, options, client=client, catalog=self.catalog,
                                temporary_directory=temporary_directory)
            for name, options in config.storages.items()
        }
        self.targets: Dict[str, BucketTarget] = {
            name: BucketTarget(name, options, client=client, messages=self.messages,
                               collection_lookup=self.get_collection,
                               temporary_directory=temporary_directory)
            for name, options in config.targets.items()
        }
        self.collections: Dict[str, Collection] = {
            name: Collection(name, self.storages[binding.storage], self.targets[binding.target])
            for name, binding in config.collections.items()
        }
        for storage in self.storages.values():
            storage.collection_names = lambda s=storage: [
                name for name, collection in self.collections.items() if collection.storage is s
            ]
        logger.debug(
            f"Resource manager ready: {len(self.storages)} storages, {len(self.targets)} targets, "
            f"{len(self.collections)} collections"
        )

    @classmethod
    def from_yaml_file(cls, path: Union[str, Path], **kwargs: Any) -> ResourceManager:
        """Build a manager from a YAML resource configuration file."""
        return cls(ResourceConfig.from_yaml_file(path), **kwargs)

    def get_collection(self, name: str) -> Collection:
        try:
            return self.collections[name]
        except KeyError:
            raise ConfigurationError(
                f'Unknown collection "{name}". Configured collections: {", ".join(sorted(self.collections)) or "none"}'
            ) from None

    def get_storage(self, name: str) -> BucketStorage:
        try:
            return self.storages[name]
        except KeyError:
            raise ConfigurationError(
                f'Unknown storage "{name}". Configured storages: {", ".join(sorted(self.storages)) or "none"}'
            ) from None

    def _register(self, resource: Resource, collection: Collection) -> Resource:
        self.catalog.add(resource)
        collection.target.publish_resource(resource, collection)
        return resource

    def import_resource(
        self,
        source: Union[BinaryIO, str, Path],
        collection_name: str = DEFAULT_COLLECTION,
        filename: Optional[str] = None,
    ) -> Resource:
        """Import content into the collection's storage, record it and publish it."""
        collection = self.get_collection(collection_name)
        resource = collection.storage.import_resource(source, collection_name, filename)
        return self._register(resource, collection)

    def import_resource_from_content(
        self,
        content: bytes,
        collection_name: str = DEFAULT_COLLECTION,
        filename: Optional[str] = None,
    ) -> Resource:
        collection = self.get_collection(collection_name)
        resource = collection.storage.import_resource_from_content(content, collection_name, filename)
        return self._register(resource, collection)

    def import_uploaded_resource(
        self,
        upload: Union[UploadDescriptor, Mapping[str, str]],
        collection_name: str = DEFAULT_COLLECTION,
    ) -> Resource:
        collection = self.get_collection(collection_name)
        resource = collection.storage.import_uploaded_resource(upload, collection_name)
        return self._register(resource, collection)

    def delete_resource(self, resource: Resource, *, unpublish: bool = True) -> bool:
        """
        Delete a resource from the catalog, its target and, when no other
        resource on the same storage shares its content, its storage.

        Returns:
            True (absent objects count as deleted)
        """
        collection = self.get_collection(resource.collection_name)
        if unpublish:
            collection.target.unpublish_resource(resource, collection)
        self.catalog.remove(resource)
        if self._content_in_use(resource.sha1, collection.storage):
            logger.debug(f"Keeping stored content {resource.sha1}: still used by another resource")
        else:
            collection.storage.delete_resource(resource)
        return True

    def _content_in_use(self, sha1: str, storage: BucketStorage) -> bool:
        """True if a catalog resource of a collection on storage still has this SHA1."""
        for name in storage.collection_names():
            if any(r.sha1 == sha1 for r in self.catalog.list_by_collection(name)):
                return True
        return False

    def publish_collection(self, name: str) -> PublishReport:
        return self.get_collection(name).publish()

    def get_public_persistent_resource_uri(self, resource: Resource) -> str:
        return self.get_collection(resource.collection_name).target.get_public_persistent_resource_uri(resource)
