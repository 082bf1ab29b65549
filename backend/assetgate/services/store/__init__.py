"""Metadata store factory: none, memory (single process) or sql (SQLAlchemy async)."""
from assetgate.core.config import Settings, get_settings
from assetgate.services.store.base import AssetStore
from assetgate.services.store.memory import MemoryAssetStore


def get_asset_store(settings: Settings | None = None) -> AssetStore | None:
    """Return the configured store, or None when STORE_BACKEND=none (store-backed features then fail)."""
    settings = settings or get_settings()
    if settings.store_backend == "none":
        return None
    if settings.store_backend == "sql":
        from assetgate.db.session import create_engine, create_session_factory
        from assetgate.services.store.sql import SqlAssetStore
        return SqlAssetStore(create_session_factory(create_engine(settings)))
    if settings.store_backend != "memory":
        raise ValueError(f"Unknown store_backend: {settings.store_backend}")
    return MemoryAssetStore()
