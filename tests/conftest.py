"""
Shared fixtures: a throwaway SQLite database with two users, a scriptable
provider adapter, GCS signing through a mocked client and an in-memory Redis.
"""
from unittest.mock import MagicMock

import pytest

from helpers import ALICE, BOB, FakeRedis, StubAdapter
from tubehub.core.config import Settings
from tubehub.database.models.user import User
from tubehub.database.session import Database
from tubehub.providers import ProviderRegistry
from tubehub.services.thumbnail_storage import ThumbnailStorage


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        transcoding_provider="stub",
        log_dir=tmp_path / "logs",
        log_to_console=False,
        gcs_bucket_name="test-bucket",
    )


@pytest.fixture
async def db(settings):
    database = Database.from_settings(settings)
    await database.create_all()
    async with database.session() as session:
        session.add_all([
            User(id=ALICE, name="Alice", handle="alice"),
            User(id=BOB, name="Bob", handle="bob"),
        ])
    yield database
    await database.close()


@pytest.fixture
def adapter() -> StubAdapter:
    return StubAdapter()


@pytest.fixture
def registry(adapter) -> ProviderRegistry:
    return ProviderRegistry({adapter.name: adapter}, default=adapter.name)


@pytest.fixture
def gcs_client() -> MagicMock:
    client = MagicMock()
    blob = client.bucket.return_value.blob.return_value
    blob.generate_signed_url.return_value = "https://storage.googleapis.com/test-bucket/signed"
    return client


@pytest.fixture
def storage(gcs_client) -> ThumbnailStorage:
    return ThumbnailStorage("test-bucket", client=gcs_client)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
