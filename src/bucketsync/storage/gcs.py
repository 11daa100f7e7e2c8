"""
Google Cloud Storage implementation of the bucket protocols.

Wraps google-cloud-storage and maps its exceptions into the bucketsync error
taxonomy, so storages and targets only ever see ObjectNotFound,
BucketNotFound, TransientProviderError and ConfigurationError.
"""
from __future__ import annotations

import logging
import tempfile
from datetime import datetime, timezone
from typing import BinaryIO, Iterator, Optional, Union

from google.api_core import exceptions as gcs_exceptions
from google.auth import exceptions as auth_exceptions
from google.auth.credentials import AnonymousCredentials
from google.cloud import storage as gcs

from ..errors import BucketNotFound, ConfigurationError, ObjectNotFound, TransientProviderError
from ..settings import Settings
from .base import Bucket, ObjectMetadata

__all__ = ["GcsBucketClient", "GcsBucket"]

logger = logging.getLogger(__name__)

# Downloads larger than this spill from memory to a temporary file
SPOOL_MAX_SIZE = 8 * 1024 * 1024

_PROVIDER_ERRORS = (
    gcs_exceptions.GoogleAPICallError,
    gcs_exceptions.RetryError,
    auth_exceptions.TransportError,
    OSError,
)


class GcsBucketClient:
    """
    BucketClient backed by google-cloud-storage.

    Supports three connection patterns:

    1. Custom endpoint (BUCKETSYNC_GCS_ENDPOINT):
       - Anonymous credentials, for fake-gcs-server and similar emulators
    2. Service account key file (GOOGLE_APPLICATION_CREDENTIALS):
       - Client.from_service_account_json(); can sign URLs
    3. Application default credentials:
       - Metadata server, gcloud user credentials, workload identity
    """

    def __init__(self, *, settings: Settings) -> None:
        self._settings = settings
        try:
            if settings.gcs_endpoint:
                self._client = gcs.Client(
                    project=settings.gcs_project or "bucketsync-local",
                    credentials=AnonymousCredentials(),
                    client_options={"api_endpoint": settings.gcs_endpoint},
                )
                logger.debug(f"GCS client using anonymous auth with custom endpoint: {settings.gcs_endpoint}")
            elif settings.gcs_credentials_file:
                self._client = gcs.Client.from_service_account_json(
                    settings.gcs_credentials_file, project=settings.gcs_project
                )
                logger.debug(f"GCS client using service account key {settings.gcs_credentials_file}")
            else:
                self._client = gcs.Client(project=settings.gcs_project)
                logger.debug("GCS client using application default credentials")
        except auth_exceptions.DefaultCredentialsError as e:
            raise ConfigurationError(f"No Google Cloud credentials available: {e}") from e
        except ValueError as e:
            raise ConfigurationError(f"Invalid Google Cloud credentials: {e}") from e

    def bucket(self, name: str) -> GcsBucket:
        return GcsBucket(self._client, self._client.bucket(name), settings=self._settings)


class GcsBucket(Bucket):
    """Handle on one Google Cloud Storage bucket. Creating it makes no API call."""

    def __init__(self, client: gcs.Client, bucket: gcs.Bucket, *, settings: Settings) -> None:
        self._client = client
        self._bucket = bucket
        self._timeout = settings.http_timeout_s
        self._temporary_directory = settings.temporary_directory

    @property
    def name(self) -> str:
        return self._bucket.name

    def _location(self, key: str) -> str:
        return f"gs://{self._bucket.name}/{key}"

    @staticmethod
    def _apply_metadata(blob: gcs.Blob, metadata: ObjectMetadata) -> bool:
        changed = False
        if metadata.content_type is not None:
            blob.content_type = metadata.content_type
            changed = True
        if metadata.cache_control is not None:
            blob.cache_control = metadata.cache_control
            changed = True
        if metadata.content_encoding is not None:
            blob.content_encoding = metadata.content_encoding
            changed = True
        return changed

    def upload(
        self,
        source: Union[BinaryIO, bytes],
        name: str,
        metadata: ObjectMetadata = ObjectMetadata(),
        *,
        predefined_acl: Optional[str] = None,
    ) -> None:
        blob = self._bucket.blob(name)
        self._apply_metadata(blob, metadata)
        content_type = metadata.content_type or "application/octet-stream"
        try:
            if isinstance(source, bytes):
                blob.upload_from_string(
                    source, content_type=content_type,
                    predefined_acl=predefined_acl, timeout=self._timeout,
                )
            else:
                blob.upload_from_file(
                    source, content_type=content_type,
                    predefined_acl=predefined_acl, timeout=self._timeout,
                )
        except gcs_exceptions.NotFound as e:
            raise BucketNotFound(
                f"Could not upload {self._location(name)}: bucket \"{self._bucket.name}\" does not exist",
                bucket=self._bucket.name,
            ) from e
        except _PROVIDER_ERRORS as e:
            raise TransientProviderError(f"GCS upload error for {self._location(name)}: {e}") from e

    def download(self, name: str) -> BinaryIO:
        blob = self._bucket.blob(name)
        buffer = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE, dir=self._temporary_directory)
        try:
            blob.download_to_file(buffer, timeout=self._timeout)
        except gcs_exceptions.NotFound as e:
            buffer.close()
            raise ObjectNotFound(f"Object not found: {self._location(name)}",
                                 bucket=self._bucket.name, key=name) from e
        except _PROVIDER_ERRORS as e:
            buffer.close()
            raise TransientProviderError(f"GCS download error for {self._location(name)}: {e}") from e
        buffer.seek(0)
        return buffer

    def exists(self, name: str) -> bool:
        try:
            return self._bucket.blob(name).exists(timeout=self._timeout)
        except _PROVIDER_ERRORS as e:
            raise TransientProviderError(f"GCS existence check error for {self._location(name)}: {e}") from e

    def delete(self, name: str) -> None:
        try:
            self._bucket.blob(name).delete(timeout=self._timeout)
        except gcs_exceptions.NotFound as e:
            raise ObjectNotFound(f"Object not found: {self._location(name)}",
                                 bucket=self._bucket.name, key=name) from e
        except _PROVIDER_ERRORS as e:
            raise TransientProviderError(f"GCS delete error for {self._location(name)}: {e}") from e

    def update(
        self,
        name: str,
        metadata: ObjectMetadata,
        *,
        predefined_acl: Optional[str] = None,
    ) -> None:
        blob = self._bucket.blob(name)
        try:
            if self._apply_metadata(blob, metadata):
                blob.patch(timeout=self._timeout)
            if predefined_acl is not None:
                blob.acl.save_predefined(predefined_acl)
        except gcs_exceptions.NotFound as e:
            raise ObjectNotFound(f"Object not found: {self._location(name)}",
                                 bucket=self._bucket.name, key=name) from e
        except _PROVIDER_ERRORS as e:
            raise TransientProviderError(f"GCS metadata update error for {self._location(name)}: {e}") from e

    def copy(
        self,
        name: str,
        destination: Bucket,
        destination_name: str,
        metadata: ObjectMetadata = ObjectMetadata(),
        *,
        predefined_acl: Optional[str] = None,
    ) -> None:
        if not isinstance(destination, GcsBucket):
            raise TypeError(f"Cannot copy from a GCS bucket into {type(destination).__name__}")

        source_blob = self._bucket.blob(name)
        try:
            new_blob = self._bucket.copy_blob(
                source_blob, destination._bucket, destination_name, timeout=self._timeout
            )
            if self._apply_metadata(new_blob, metadata):
                new_blob.patch(timeout=self._timeout)
            if predefined_acl is not None:
                new_blob.acl.save_predefined(predefined_acl)
        except gcs_exceptions.NotFound as e:
            raise ObjectNotFound(f"Copy source not found: {self._location(name)}",
                                 bucket=self._bucket.name, key=name) from e
        except _PROVIDER_ERRORS as e:
            raise TransientProviderError(
                f"GCS copy error from {self._location(name)} to "
                f"gs://{destination.name}/{destination_name}: {e}"
            ) from e

    def list_names(self, prefix: str = "") -> Iterator[str]:
        try:
            for blob in self._client.list_blobs(self._bucket, prefix=prefix or None, timeout=self._timeout):
                yield blob.name
        except gcs_exceptions.NotFound as e:
            raise BucketNotFound(f"Bucket \"{self._bucket.name}\" does not exist",
                                 bucket=self._bucket.name) from e
        except _PROVIDER_ERRORS as e:
            raise TransientProviderError(f"GCS listing error for gs://{self._bucket.name}/{prefix}: {e}") from e

    def signed_url(self, name: str, expiration: int, *, method: str = "GET") -> str:
        blob = self._bucket.blob(name)
        try:
            return blob.generate_signed_url(
                expiration=datetime.fromtimestamp(expiration, tz=timezone.utc),
                method=method,
                version="v4",
            )
        except AttributeError as e:
            # Raised by google-auth when the credentials carry no private key
            raise ConfigurationError(f"Credentials cannot sign URLs for {self._location(name)}: {e}") from e
        except _PROVIDER_ERRORS as e:
            raise TransientProviderError(f"GCS signing error for {self._location(name)}: {e}") from e
