"""
Data models for resources and bucket configuration.

These Pydantic models provide type safety and validation for resource
metadata and for the storage/target option sets, from parsing the YAML
resource configuration to constructing storages and targets.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, Mapping, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigurationError
from .hashing import SHA1_PATTERN
from .media_types import DEFAULT_GZIP_MEDIA_TYPES, file_extension, media_type_for_filename
from .storage.keys import normalize_key_prefix

__all__ = [
    "Resource",
    "StorageObject",
    "UploadDescriptor",
    "StorageOptions",
    "TargetOptions",
    "PersistentResourceUriOptions",
    "CustomBaseUriMethod",
    "CollectionConfig",
    "ResourceConfig",
    "parse_options",
]

T = TypeVar("T", bound=BaseModel)


class Resource(BaseModel):
    """
    A content-addressed, immutable binary asset tracked by the catalog.

    Identity for storage purposes is the SHA1 digest: two resources with
    identical content share one stored object regardless of filename.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sha1: str = Field(..., pattern=SHA1_PATTERN, description="SHA1 of the content (40 hex chars)")
    md5: Optional[str] = Field(default=None, pattern=r"^[0-9a-f]{32}$", description="Legacy MD5 digest")
    filename: str = Field(..., min_length=1, description="User-facing filename including extension")
    media_type: str = Field(default="", alias="mediaType", description="IANA media type")
    file_size: int = Field(default=0, ge=0, alias="fileSize", description="Size in bytes")
    collection_name: str = Field(default="persistent", alias="collectionName")
    relative_publication_path: str = Field(default="", alias="relativePublicationPath")

    @model_validator(mode="before")
    @classmethod
    def derive_media_type(cls, data: Any) -> Any:
        """Fill in the media type from the filename extension when missing."""
        if isinstance(data, dict) and not (data.get("media_type") or data.get("mediaType")):
            filename = data.get("filename")
            if isinstance(filename, str):
                data = {k: v for k, v in data.items() if k != "mediaType"}
                data["media_type"] = media_type_for_filename(filename)
        return data

    @property
    def file_extension(self) -> str:
        return file_extension(self.filename)


@dataclass
class StorageObject:
    """
    Ephemeral view of a stored object produced while enumerating a collection.

    The content stream is opened only when open_stream() is called, so a
    large collection never holds more than one remote download at a time.
    """
    filename: str
    sha1: str
    media_type: str
    file_size: int = 0
    md5: Optional[str] = None
    collection_name: str = ""
    relative_publication_path: str = ""
    opener: Optional[Callable[[], Optional[BinaryIO]]] = field(default=None, repr=False)

    @classmethod
    def from_resource(cls, resource: Resource,
                      opener: Callable[[], Optional[BinaryIO]]) -> StorageObject:
        return cls(
            filename=resource.filename,
            sha1=resource.sha1,
            media_type=resource.media_type,
            file_size=resource.file_size,
            md5=resource.md5,
            collection_name=resource.collection_name,
            relative_publication_path=resource.relative_publication_path,
            opener=opener,
        )

    def open_stream(self) -> Optional[BinaryIO]:
        """Open the content stream, or return None if there is no content."""
        if self.opener is None:
            return None
        return self.opener()


@dataclass(frozen=True)
class UploadDescriptor:
    """
    A file received through an HTTP upload.

    Attributes:
        name: Client-supplied filename
        tmp_name: Path of the temporary file written by the web server
    """
    name: str
    tmp_name: str


class _Options(BaseModel):
    """Base for option sets: unknown keys are rejected."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)


class StorageOptions(_Options):
    """Options of a bucket storage."""
    bucket: str = Field(..., min_length=1, description="Bucket name")
    key_prefix: str = Field(default="", alias="keyPrefix", description="Prefix for all object keys")

    @field_validator("bucket")
    @classmethod
    def validate_bucket(cls, v: str) -> str:
        if not re.match(r"^[a-z0-9][a-z0-9._-]{1,220}[a-z0-9]$", v):
            raise ValueError(f"invalid bucket name: {v}")
        return v

    @field_validator("key_prefix")
    @classmethod
    def strip_leading_slash(cls, v: str) -> str:
        return normalize_key_prefix(v)


class PersistentResourceUriOptions(_Options):
    """How public URIs of persistent resources are rendered."""
    pattern: str = Field(default="", description="URI template, empty for the default")
    enable_signing: bool = Field(default=False, alias="enableSigning")
    signature_lifetime: int = Field(default=600, gt=0, alias="signatureLifetime", description="Seconds")


class CustomBaseUriMethod(_Options):
    """
    Hook computing the base URI at construction time.

    object_name is a dotted import path ("package.module.Object"); when it
    names a class, the class is instantiated without arguments.
    """
    object_name: str = Field(..., min_length=1, alias="objectName")
    method_name: str = Field(..., min_length=1, alias="methodName")


class TargetOptions(StorageOptions):
    """Options of a bucket publication target."""
    base_uri: Optional[str] = Field(default=None, alias="baseUri")
    persistent_resource_uris: PersistentResourceUriOptions = Field(
        default_factory=PersistentResourceUriOptions, alias="persistentResourceUris"
    )
    cors_allow_origin: str = Field(default="*", alias="corsAllowOrigin")
    gzip_compression_level: int = Field(default=9, ge=1, le=9, alias="gzipCompressionLevel")
    gzip_compression_media_types: Tuple[str, ...] = Field(
        default=DEFAULT_GZIP_MEDIA_TYPES, alias="gzipCompressionMediaTypes"
    )
    custom_base_uri_method: Optional[CustomBaseUriMethod] = Field(default=None, alias="customBaseUriMethod")

    @field_validator("base_uri")
    @classmethod
    def empty_base_uri_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class CollectionConfig(_Options):
    """Binds a collection to one storage and one target by name."""
    storage: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)


class ResourceConfig(_Options):
    """
    Resource configuration parsed from a YAML file.

    Example:
        storages:
          gcsPersistentResourcesStorage:
            bucket: storage.example.net
        targets:
          gcsPersistentResourcesTarget:
            bucket: target.example.net
            baseUri: https://cdn.example.net/
        collections:
          persistent:
            storage: gcsPersistentResourcesStorage
            target: gcsPersistentResourcesTarget
    """
    storages: Dict[str, StorageOptions] = Field(default_factory=dict)
    targets: Dict[str, TargetOptions] = Field(default_factory=dict)
    collections: Dict[str, CollectionConfig] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_collections(self) -> ResourceConfig:
        """Validate that collections reference configured storages and targets."""
        for name, collection in self.collections.items():
            if collection.storage not in self.storages:
                raise ValueError(f"Collection '{name}' references unknown storage '{collection.storage}'")
            if collection.target not in self.targets:
                raise ValueError(f"Collection '{name}' references unknown target '{collection.target}'")
        return self

    @classmethod
    def from_yaml_file(cls, path: Union[str, Path]) -> ResourceConfig:
        """Load the resource configuration from a YAML file."""
        import yaml

        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(f"Resource configuration file not found: {path}")
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
        return parse_options(cls, str(path), data, "configuration")


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"])
        if item["type"] == "extra_forbidden":
            parts.append(f'an unknown option "{location}" was specified')
        elif location:
            parts.append(f'option "{location}": {item["msg"]}')
        else:
            parts.append(item["msg"])
    return "; ".join(parts)


def parse_options(model: Type[T], name: str, options: Union[T, Mapping[str, Any], None], kind: str) -> T:
    """
    Validate an option mapping into a typed options model.

    Args:
        model: Options model class
        name: Name of the storage/target being configured (for messages)
        options: Mapping of option keys, or an already validated model
        kind: Human-readable kind ("storage", "target", ...)

    Returns:
        Validated options

    Raises:
        ConfigurationError: On unknown keys or invalid values
    """
    if isinstance(options, model):
        return options
    if options is not None and not isinstance(options, Mapping):
        raise ConfigurationError(
            f'The options of the "{name}" resource {kind} must be a mapping, got {type(options).__name__}.'
        )
    try:
        return model.model_validate(dict(options or {}))
    except ValidationError as e:
        raise ConfigurationError(
            f'Invalid configuration of the "{name}" resource {kind}: '
            f"{_describe_validation_error(e)}. Please check your settings."
        ) from e
