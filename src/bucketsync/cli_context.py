"""
CLI Context for managing application dependencies.

Provides a clean way to manage CLI-level dependencies like settings and the
bucket client, avoiding global state and enabling proper dependency injection.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .settings import Settings, create_settings_from_env
from .storage.base import BucketClient
from .storage.client_factory import make_bucket_client


@dataclass
class CLIContext:
    """
    Shared context for CLI commands.

    Manages application-level dependencies (settings, bucket client) that are
    initialized once and shared across a CLI command execution.
    """
    settings: Settings
    _client: Optional[BucketClient] = None

    @classmethod
    def from_env(cls) -> CLIContext:
        """
        Create CLI context from environment variables.

        Returns:
            CLIContext with settings loaded from environment
        """
        settings = create_settings_from_env()
        return cls(settings=settings)

    @property
    def client(self) -> BucketClient:
        """
        Get or create the bucket client (lazy initialization).

        The client is created on first access and reused for subsequent calls,
        so credentials are loaded at most once per CLI command.
        """
        if self._client is None:
            self._client = make_bucket_client(self.settings)
        return self._client
