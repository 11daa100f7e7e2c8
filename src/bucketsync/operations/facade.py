"""
Operations Facade - Application service layer.

Provides a clean interface between CLI and core APIs, centralizing
command orchestration, configuration, and policy decisions while keeping
CLI commands thin and testable.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from ..catalog import InMemoryResourceCatalog, MutableResourceCatalog
from ..errors import ConfigurationError
from ..maintenance import (
    OrphanReport,
    RepairReport,
    check_connection,
    cleanup_orphans,
    repair_metadata,
    republish_collection,
)
from ..manager import ResourceManager
from ..messages import Message
from ..models import Resource
from ..publisher import PublishReport
from ..settings import Settings
from ..storage.base import BucketClient


@dataclass(frozen=True)
class OpsConfig:
    """
    Configuration for Operations facade.

    Centralizes where the resource configuration and catalog come from so
    commands don't each need to know.
    """
    config_path: Path = Path("bucketsync.yaml")   # Storages, targets, collections
    catalog_path: Optional[Path] = None           # YAML catalog, required by catalog-backed commands
    verbose: bool = False                         # Show detailed output


class Operations:
    """
    Application service facade for CLI operations.

    Design Notes: Operations Facade

    This facade provides a clean separation between CLI parsing/formatting
    and the core publishing logic. It centralizes:

    - Command orchestration (one method per CLI verb)
    - Client injection (enables testing with fakes)
    - Error boundary (exceptions bubble up for central mapping)

    The resource manager is built on first use, so commands that only need
    the bucket client (connect) never read the resource configuration.
    """

    def __init__(self, config: OpsConfig, client: BucketClient, settings: Optional[Settings] = None,
                 catalog: Optional[MutableResourceCatalog] = None):
        """
        Initialize Operations facade.

        Args:
            config: Configuration settings
            client: Bucket client for all remote calls
            settings: Client settings (temporary directory)
            catalog: Resource catalog (loaded from config.catalog_path if None)
        """
        self.cfg = config
        self.client = client
        self.settings = settings
        self._catalog = catalog
        self._manager: Optional[ResourceManager] = None

    @property
    def catalog(self) -> MutableResourceCatalog:
        """
        The resource catalog, loaded from config.catalog_path on first use.

        Raises:
            ConfigurationError: If no catalog was injected and no path is configured
        """
        if self._catalog is None:
            if self.cfg.catalog_path is None:
                raise ConfigurationError(
                    "No resource catalog was given; pass --catalog or set BUCKETSYNC_CATALOG."
                )
            self._catalog = InMemoryResourceCatalog.from_yaml_file(self.cfg.catalog_path)
        return self._catalog

    @property
    def manager(self) -> ResourceManager:
        if self._manager is None:
            self._manager = ResourceManager.from_yaml_file(
                self.cfg.config_path, client=self.client, catalog=self.catalog, settings=self.settings
            )
        return self._manager

    @property
    def messages(self) -> List[Message]:
        """Messages recorded by the targets so far."""
        if self._manager is None:
            return []
        return self._manager.messages.messages

    def connect(self, bucket: str, progress: Callable[[str], None] = lambda message: None) -> None:
        """Write, read and delete a test object in bucket."""
        check_connection(self.client, bucket, progress)

    def republish(self, collection: str) -> PublishReport:
        return republish_collection(self.manager, collection)

    def repair_metadata(self, collection: str, *, resume_from: Optional[str] = None,
                        progress: Callable[[Resource, Optional[Exception]], None] = lambda r, e: None) -> RepairReport:
        return repair_metadata(self.manager, collection, resume_from=resume_from, progress=progress)

    def orphans(self, storage: str, *, export_path: Optional[Path] = None, delete: bool = False) -> OrphanReport:
        return cleanup_orphans(self.manager.get_storage(storage), self.catalog,
                               export_path=export_path, delete=delete)
