import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Ensure project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# upload_broker.main builds an app at import time
os.environ["AWS_REGION"] = "us-east-1"
os.environ["AWS_BUCKET"] = "test-bucket"
os.environ["AWS_ACCESS_KEY_ID"] = "test"
os.environ["AWS_SECRET_ACCESS_KEY"] = "test"
os.environ["STORAGE_BACKEND"] = "memory"

from upload_broker.core.config import Settings, get_settings
from upload_broker.main import create_app
from upload_broker.services import storage as storage_service
from upload_broker.services.storage import MemoryStorageService, StorageError

PROVIDER_ERROR = (
    "An error occurred (AccessDenied) when calling the CreateMultipartUpload "
    "operation: Access Denied"
)


def make_settings(**overrides) -> Settings:
    values = {
        "AWS_REGION": "us-east-1",
        "AWS_BUCKET": "test-bucket",
        "AWS_ACCESS_KEY_ID": "test",
        "AWS_SECRET_ACCESS_KEY": "test",
        "STORAGE_BACKEND": "memory",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class RecordingStorage(MemoryStorageService):
    """Memory backend that remembers what was forwarded to it."""

    def __init__(self) -> None:
        super().__init__()
        self.completed: list[tuple] = []

    async def complete_multipart_upload(self, bucket, key, upload_id, parts):  # type: ignore[override]
        self.completed.append((bucket, key, upload_id, list(parts)))
        await super().complete_multipart_upload(bucket, key, upload_id, parts)


class FailingStorage:
    scheme = "failing"

    def __init__(self, message: str = PROVIDER_ERROR) -> None:
        self.message = message

    async def create_multipart_upload(self, bucket, key):
        raise StorageError(self.message)

    def presign_upload_part(self, bucket, key, upload_id, part_number, expires_in):
        raise StorageError(self.message)

    async def complete_multipart_upload(self, bucket, key, upload_id, parts):
        raise StorageError(self.message)


class BrokenStorage(FailingStorage):
    async def create_multipart_upload(self, bucket, key):
        raise RuntimeError("boom")


@pytest.fixture(scope="session", autouse=True)
def configure_environment():
    get_settings.cache_clear()
    storage_service.reset_storage_service()
    yield
    get_settings.cache_clear()
    storage_service.reset_storage_service()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def failing_storage() -> FailingStorage:
    return FailingStorage()


@pytest.fixture
def broken_storage() -> BrokenStorage:
    return BrokenStorage()


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def app_instance(settings, storage):
    return create_app(settings=settings, storage=storage)


@pytest.fixture
def make_client():
    @asynccontextmanager
    async def _make_client(settings=None, storage=None):
        app = create_app(settings=settings or make_settings(), storage=storage or MemoryStorageService())
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client

    return _make_client


@pytest_asyncio.fixture
async def client(app_instance):
    transport = ASGITransport(app=app_instance)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
