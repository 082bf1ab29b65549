"""Pytest fixtures: fake clock, in-memory object store and asset store, SQLite asset store, orchestrator, test client."""
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

from assetgate.core.config import get_settings
from assetgate.db.session import create_session_factory, init_db
from assetgate.main import create_app
from assetgate.services.orchestrator import AssetOrchestrator
from assetgate.services.storage.memory import MemoryObjectStore
from assetgate.services.store.memory import MemoryAssetStore
from assetgate.services.store.sql import SqlAssetStore
from assetgate.services.upload_types import OrchestratorConfig, UploadTypeConfig

BUCKET = "test-bucket"


class FakeClock:
    """Epoch-ms clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


UPLOAD_TYPES = {
    "image": {"max_size": "2mb"},
    "verified": UploadTypeConfig(verify_assets=True, verify_assets_expiration_seconds=60),
    "avatar": UploadTypeConfig(include_metadata_in_response=True, metadata={"kind": "avatar"}),
}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def object_store() -> MemoryObjectStore:
    return MemoryObjectStore()


@pytest.fixture
def asset_store(clock) -> MemoryAssetStore:
    return MemoryAssetStore(clock=clock)


@pytest.fixture
def config() -> OrchestratorConfig:
    return OrchestratorConfig(bucket=BUCKET, region="eu-west-1", max_size="1mb")


@pytest.fixture
async def orchestrator(object_store, asset_store, config, clock) -> AssetOrchestrator:
    orch = AssetOrchestrator(
        object_store=object_store,
        store=asset_store,
        config=config,
        upload_types=UPLOAD_TYPES,
        clock=clock,
    )
    await orch.init()
    return orch


@pytest.fixture
async def storeless_orchestrator(object_store, config, clock) -> AssetOrchestrator:
    """No metadata store: grants and path-based reads/deletes only."""
    orch = AssetOrchestrator(
        object_store=object_store,
        store=None,
        config=config,
        upload_types=UPLOAD_TYPES,
        clock=clock,
    )
    await orch.init()
    return orch


@pytest.fixture
async def sql_store(tmp_path, clock):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'assets.db'}", echo=False)
    await init_db(engine)
    yield SqlAssetStore(create_session_factory(engine), clock=clock)
    await engine.dispose()


@pytest.fixture
async def client(orchestrator):
    app = create_app(orchestrator)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def settings_env(monkeypatch):
    """Set env vars for Settings and drop the cached instance before and after."""

    def _set(**env: str | None) -> None:
        for key, value in env.items():
            if value is None:
                monkeypatch.delenv(key, raising=False)
            else:
                monkeypatch.setenv(key, value)
        get_settings.cache_clear()

    get_settings.cache_clear()
    yield _set
    get_settings.cache_clear()
