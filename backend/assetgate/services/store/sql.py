"""SQLAlchemy asset store: one row per asset, JSON payload plus expiry and download-URL cache columns."""
import logging
from collections.abc import Callable

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assetgate.core.errors import AlreadyExists, AssetExpired
from assetgate.db.models import AssetRecord, Base, utcnow
from assetgate.services.store.base import AssetStore
from assetgate.services.types import Asset, CachedDownloadUrl, calculate_expires, now_ms

logger = logging.getLogger(__name__)

# Asset fields stored in the JSON payload; the rest are columns
_PAYLOAD_FIELDS = {"bucket", "path", "upload_type", "file_type", "name", "metadata", "verified"}


def _to_payload(asset: Asset) -> dict:
    return asset.model_dump(mode="json", include=_PAYLOAD_FIELDS)


def _to_asset(row: AssetRecord) -> Asset:
    payload = {k: v for k, v in (row.data or {}).items() if k in _PAYLOAD_FIELDS}
    return Asset.model_validate(
        {
            **payload,
            "id": row.id,
            "expires": row.expires,
            "presigned_url": row.presigned_url,
            "presigned_url_expires": row.presigned_url_expires,
            "created_at": row.created_at,
            "updated_at": row.updated_at,
        }
    )


class SqlAssetStore(AssetStore):
    """
    Asset store over an async SQLAlchemy session factory (Postgres via asyncpg, SQLite via aiosqlite).

    The primary key is the authoritative uniqueness check: a concurrent insert of the
    same id surfaces as AlreadyExists rather than silently overwriting.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], int] = now_ms,
    ) -> None:
        super().__init__(clock)
        self._session_factory = session_factory

    async def create_tables(self) -> None:
        async with self._session_factory() as session:
            conn = await session.connection()
            await conn.run_sync(Base.metadata.create_all)
            await session.commit()

    async def upsert(self, asset: Asset, ttl_ms: int = 0) -> Asset:
        expires = calculate_expires(ttl_ms, self.now())
        async with self._session_factory() as session:
            row = await session.get(AssetRecord, asset.id)
            if row is None:
                row = AssetRecord(id=asset.id, data=_to_payload(asset), expires=expires)
                session.add(row)
            else:
                row.data = _to_payload(asset)
                row.expires = expires
                row.updated_at = utcnow()
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise AlreadyExists(asset.id) from e
            return _to_asset(row)

    async def find(self, asset_id: str) -> Asset | None:
        async with self._session_factory() as session:
            row = await session.get(AssetRecord, asset_id)
            if row is None:
                return None
            asset = _to_asset(row)
            if asset.is_provisional_expired(self.now()):
                await session.delete(row)
                await session.commit()
                logger.info("evicted expired provisional asset %s", asset_id)
                raise AssetExpired(asset_id)
            return asset

    async def delete(self, asset_id: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(AssetRecord).where(AssetRecord.id == asset_id))
            await session.commit()

    async def all(self) -> list[Asset]:
        async with self._session_factory() as session:
            result = await session.execute(select(AssetRecord))
            return [_to_asset(row) for row in result.scalars().all()]

    async def get_cached_download_url(self, asset_id: str) -> CachedDownloadUrl | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AssetRecord.presigned_url, AssetRecord.presigned_url_expires).where(AssetRecord.id == asset_id)
            )
            row = result.one_or_none()
        if row is None or not row.presigned_url:
            return None
        return CachedDownloadUrl(url=row.presigned_url, expires=row.presigned_url_expires)

    async def save_cached_download_url(self, asset_id: str, url: str, expires_s: int | None) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(AssetRecord)
                .where(AssetRecord.id == asset_id)
                .values(
                    presigned_url=url,
                    presigned_url_expires=calculate_expires(expires_s * 1000 if expires_s else 0, self.now()),
                )
            )
            await session.commit()

    async def evict_cached_download_url(self, asset_id: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(AssetRecord)
                .where(AssetRecord.id == asset_id)
                .values(presigned_url=None, presigned_url_expires=None)
            )
            await session.commit()
