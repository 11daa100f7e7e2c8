"""Root pytest configuration for bucketsync tests."""
import pytest
from tenacity import wait_none

from bucketsync.catalog import Collection, InMemoryResourceCatalog
from bucketsync.messages import MessageCollector
from bucketsync.publisher import BucketTarget
from bucketsync.resource_storage import BucketStorage
from bucketsync.settings import Settings
from bucketsync.storage.fakes import FakeBucketClient


STORAGE_BUCKET = "storage-bucket"
TARGET_BUCKET = "target-bucket"


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires a real bucket)"
    )


# Set up test environment variables
@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Keep the developer's Google Cloud environment out of the tests."""
    for name in (
        "BUCKETSYNC_GCS_PROJECT",
        "GOOGLE_APPLICATION_CREDENTIALS",
        "BUCKETSYNC_GCS_ENDPOINT",
        "BUCKETSYNC_HTTP_TIMEOUT",
        "BUCKETSYNC_TMPDIR",
        "BUCKETSYNC_CONFIG",
        "BUCKETSYNC_CATALOG",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("BUCKETSYNC_BUCKET_CLIENT", "memory")


# Standardized test fixtures
@pytest.fixture
def staging_dir(tmp_path):
    """Directory receiving scoped temporary files; must be empty after each operation."""
    path = tmp_path / "staging"
    path.mkdir()
    return path


@pytest.fixture
def settings(staging_dir):
    """Standard test settings."""
    return Settings(client_impl="memory", temporary_directory=str(staging_dir))


@pytest.fixture
def client():
    """Standard in-memory bucket client."""
    return FakeBucketClient()


@pytest.fixture
def catalog():
    return InMemoryResourceCatalog()


@pytest.fixture
def messages():
    return MessageCollector()


@pytest.fixture
def make_storage(client, catalog, staging_dir):
    """Factory for storages sharing the fake client and catalog."""
    def _make(**options):
        options.setdefault("bucket", STORAGE_BUCKET)
        return BucketStorage("gcsPersistentResourcesStorage", options, client=client, catalog=catalog,
                             temporary_directory=str(staging_dir))
    return _make


@pytest.fixture
def storage(make_storage):
    """Storage in its own bucket with a key prefix."""
    return make_storage(keyPrefix="persistent/")


@pytest.fixture
def make_target(client, messages, staging_dir):
    """Factory for targets that retry without waiting."""
    def _make(**options):
        options.setdefault("bucket", TARGET_BUCKET)
        return BucketTarget("gcsPersistentResourcesTarget", options, client=client, messages=messages,
                            temporary_directory=str(staging_dir), metadata_retry_wait=wait_none())
    return _make


@pytest.fixture
def target(make_target):
    """Target in a separate bucket without a key prefix."""
    return make_target()


@pytest.fixture
def collection(storage, target):
    return Collection("persistent", storage, target)
