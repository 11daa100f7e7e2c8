"""
bucketsync - Google Cloud Storage connector for content-addressed resources.

Stores resource content once per SHA1 in a storage bucket and publishes it to
target buckets by server-side copy, streaming upload (gzip when eligible) or,
when storage and target share bucket and prefix, by metadata alone.
"""
from .catalog import Collection, InMemoryResourceCatalog, ResourceCatalog
from .errors import (
    BucketNotFound,
    BucketSyncError,
    ConfigurationError,
    MetadataUpdateError,
    ObjectNotFound,
    PreconditionViolation,
    ResourceImportError,
    StorageAccessError,
    TransientProviderError,
)
from .manager import ResourceManager
from .messages import MessageCollector
from .models import Resource, ResourceConfig, StorageObject, StorageOptions, TargetOptions, UploadDescriptor
from .publisher import BucketTarget, PublishReport
from .resource_storage import BucketStorage
from .settings import Settings, create_settings_from_env

__version__ = "0.1.0"

__all__ = [
    "BucketStorage",
    "BucketTarget",
    "PublishReport",
    "ResourceManager",
    "Collection",
    "ResourceCatalog",
    "InMemoryResourceCatalog",
    "MessageCollector",
    "Resource",
    "ResourceConfig",
    "StorageObject",
    "StorageOptions",
    "TargetOptions",
    "UploadDescriptor",
    "Settings",
    "create_settings_from_env",
    "BucketSyncError",
    "ConfigurationError",
    "BucketNotFound",
    "ObjectNotFound",
    "TransientProviderError",
    "PreconditionViolation",
    "ResourceImportError",
    "StorageAccessError",
    "MetadataUpdateError",
]
