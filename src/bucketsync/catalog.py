"""
Resource catalog and collections.

The catalog is owned by the host application; bucketsync only needs to
resolve hashes and enumerate the members of a collection. The in-memory
implementation backs the CLI (loaded from YAML) and the tests.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple, Union, runtime_checkable

from pydantic import ValidationError

from .errors import ConfigurationError
from .models import Resource, StorageObject

if TYPE_CHECKING:
    from .publisher import BucketTarget, PublishReport
    from .resource_storage import BucketStorage

__all__ = ["ResourceCatalog", "MutableResourceCatalog", "InMemoryResourceCatalog", "Collection"]

logger = logging.getLogger(__name__)


@runtime_checkable
class ResourceCatalog(Protocol):
    """Protocol for the host's resource catalog."""

    def resolve(self, sha1: str) -> Optional[Resource]:
        """Return a resource with this SHA1, or None if none is known."""
        ...

    def list_by_collection(self, collection_name: str) -> Iterable[Resource]:
        """Enumerate the resources of a collection (may be lazy)."""
        ...


@runtime_checkable
class MutableResourceCatalog(ResourceCatalog, Protocol):
    """Catalog that also records imported and deleted resources and supports resumable scans."""

    def add(self, resource: Resource) -> None:
        ...

    def remove(self, resource: Resource) -> bool:
        ...

    def iter_by_sha1(self, collection_name: Optional[str] = None,
                     start_from: Optional[str] = None) -> Iterator[Resource]:
        ...


class InMemoryResourceCatalog(MutableResourceCatalog):
    """
    Catalog kept in a dict, keyed by (collection, sha1, filename).

    Insertion order is the enumeration order of list_by_collection().
    """

    def __init__(self, resources: Iterable[Resource] = ()) -> None:
        self._resources: Dict[Tuple[str, str, str], Resource] = {}
        for resource in resources:
            self.add(resource)

    @staticmethod
    def _identity(resource: Resource) -> Tuple[str, str, str]:
        return (resource.collection_name, resource.sha1, resource.filename)

    def add(self, resource: Resource) -> None:
        self._resources[self._identity(resource)] = resource

    def remove(self, resource: Resource) -> bool:
        """Remove a resource; returns False if it was not in the catalog."""
        return self._resources.pop(self._identity(resource), None) is not None

    def resolve(self, sha1: str) -> Optional[Resource]:
        for resource in self._resources.values():
            if resource.sha1 == sha1:
                return resource
        return None

    def list_by_collection(self, collection_name: str) -> Iterator[Resource]:
        for resource in list(self._resources.values()):
            if resource.collection_name == collection_name:
                yield resource

    def iter_by_sha1(self, collection_name: Optional[str] = None,
                     start_from: Optional[str] = None) -> Iterator[Resource]:
        """
        Enumerate resources ordered by SHA1 ascending.

        Args:
            collection_name: Restrict to one collection
            start_from: First SHA1 to include (inclusive)
        """
        ordered = sorted(self._resources.values(), key=lambda r: (r.sha1, r.filename))
        for resource in ordered:
            if collection_name is not None and resource.collection_name != collection_name:
                continue
            if start_from is not None and resource.sha1 < start_from:
                continue
            yield resource

    def __len__(self) -> int:
        return len(self._resources)

    @classmethod
    def from_yaml_file(cls, path: Union[str, Path]) -> InMemoryResourceCatalog:
        """
        Load a catalog from a YAML file.

        Example:
            resources:
              - sha1: 2aae6c35c94fcfb415dbe95f408b9ce91ee846ed
                filename: logo.svg
                collectionName: persistent
        """
        import yaml

        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(f"Catalog file not found: {path}")
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        entries = data.get("resources", []) if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise ConfigurationError(f"{path} must contain a 'resources' list")

        resources: List[Resource] = []
        for index, entry in enumerate(entries):
            try:
                resources.append(Resource.model_validate(entry))
            except ValidationError as e:
                raise ConfigurationError(f"Invalid resource #{index} in {path}: {e}") from e
        logger.debug(f"Loaded {len(resources)} resources from {path}")
        return cls(resources)


class Collection:
    """A named set of resources bound to one storage and one target."""

    def __init__(self, name: str, storage: BucketStorage, target: BucketTarget) -> None:
        self.name = name
        self.storage = storage
        self.target = target

    def get_objects(self) -> Iterator[StorageObject]:
        return self.storage.get_objects_by_collection(self.name)

    def publish(self) -> PublishReport:
        return self.target.publish_collection(self)

    def __repr__(self) -> str:
        return f"Collection({self.name!r}, storage={self.storage.name!r}, target={self.target.name!r})"
