"""
Settings and configuration for bucketsync.

Centralizes configuration values and provides validation with fail-fast behavior.
Loads settings from environment variables at client construction time.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError

__all__ = ["Settings", "create_settings_from_env", "CLIENT_IMPLEMENTATIONS"]

CLIENT_IMPLEMENTATIONS = ("gcs", "memory")


@dataclass(frozen=True)
class Settings:
    """
    Configuration settings for the bucket client.

    Google Cloud Storage Settings:
        gcs_project: Google Cloud project ID (client default if None)
        gcs_credentials_file: Path to a service account JSON key file
        gcs_endpoint: Custom API endpoint (for emulators such as fake-gcs-server)
        http_timeout_s: Timeout for a single API round trip in seconds

    Local Settings:
        temporary_directory: Directory for scoped temporary files (system default if None)
        client_impl: Bucket client implementation ("gcs" or "memory")
    """
    gcs_project: Optional[str] = None
    gcs_credentials_file: Optional[str] = None
    gcs_endpoint: Optional[str] = None
    http_timeout_s: float = 60.0

    temporary_directory: Optional[str] = None
    client_impl: str = "gcs"

    def __post_init__(self):
        """Validate settings on construction."""
        if self.client_impl not in CLIENT_IMPLEMENTATIONS:
            raise ConfigurationError(
                f"Unknown client_impl: {self.client_impl}. "
                f"Supported values: {', '.join(CLIENT_IMPLEMENTATIONS)}"
            )

        if self.http_timeout_s <= 0:
            raise ConfigurationError(f"http_timeout_s must be positive, got {self.http_timeout_s}")

        # Project IDs: 6-30 chars, lowercase letters, digits and hyphens
        if self.gcs_project is not None:
            if not re.match(r"^[a-z][a-z0-9-]{4,28}[a-z0-9]$", self.gcs_project):
                raise ConfigurationError(f"Invalid gcs_project format: {self.gcs_project}")

        if self.gcs_endpoint is not None:
            if not re.match(r"^https?://[a-zA-Z0-9.-]+(?::[0-9]+)?(?:/.*)?$", self.gcs_endpoint):
                raise ConfigurationError(f"Invalid gcs_endpoint format: {self.gcs_endpoint}")

        if self.gcs_credentials_file is not None and not Path(self.gcs_credentials_file).is_file():
            raise ConfigurationError(
                f"The credentials file \"{self.gcs_credentials_file}\" does not exist. "
                "Either the file is missing or you need to adjust your settings."
            )

        if self.temporary_directory is not None and not Path(self.temporary_directory).is_dir():
            raise ConfigurationError(f"temporary_directory is not a directory: {self.temporary_directory}")


def create_settings_from_env() -> Settings:
    """
    Load settings from environment variables.

    Environment Variables:
        - BUCKETSYNC_GCS_PROJECT (optional)
        - GOOGLE_APPLICATION_CREDENTIALS (optional, service account key file)
        - BUCKETSYNC_GCS_ENDPOINT (optional, for emulators)
        - BUCKETSYNC_HTTP_TIMEOUT (default: 60.0)
        - BUCKETSYNC_TMPDIR (optional)
        - BUCKETSYNC_BUCKET_CLIENT (default: gcs)

    Returns:
        Settings object with validated configuration

    Raises:
        ConfigurationError: If configuration is invalid

    Note:
        Creates a fresh Settings instance every time (no caching).
    """
    def get_float(key: str, default: float) -> float:
        value = os.getenv(key)
        try:
            return float(value) if value else default
        except ValueError:
            raise ConfigurationError(f"{key} must be a number, got {value!r}")

    return Settings(
        gcs_project=os.getenv("BUCKETSYNC_GCS_PROJECT") or None,
        gcs_credentials_file=os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or None,
        gcs_endpoint=os.getenv("BUCKETSYNC_GCS_ENDPOINT") or None,
        http_timeout_s=get_float("BUCKETSYNC_HTTP_TIMEOUT", 60.0),
        temporary_directory=os.getenv("BUCKETSYNC_TMPDIR") or None,
        client_impl=os.getenv("BUCKETSYNC_BUCKET_CLIENT", "gcs").lower(),
    )
