"""In-memory key-value asset store with lazy TTL. Single process only (dev, tests)."""
from collections.abc import Callable
from datetime import datetime, timezone

from assetgate.core.errors import AssetExpired
from assetgate.services.store.base import AssetStore
from assetgate.services.types import Asset, CachedDownloadUrl, calculate_expires, is_expired, now_ms


class MemoryAssetStore(AssetStore):
    """Records and cached download URLs in dicts; a cached URL expires on its own TTL."""

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        super().__init__(clock)
        self._assets: dict[str, Asset] = {}
        self._urls: dict[str, CachedDownloadUrl] = {}

    async def upsert(self, asset: Asset, ttl_ms: int = 0) -> Asset:
        existing = self._assets.get(asset.id)
        now = datetime.now(timezone.utc)
        stored = asset.model_copy(
            update={
                "expires": calculate_expires(ttl_ms, self.now()),
                "created_at": existing.created_at if existing else now,
                "updated_at": now,
                "presigned_url": None,
                "presigned_url_expires": None,
            }
        )
        self._assets[asset.id] = stored
        return self._with_cached_url(stored)

    async def find(self, asset_id: str) -> Asset | None:
        asset = self._assets.get(asset_id)
        if asset is None:
            return None
        if asset.is_provisional_expired(self.now()):
            await self.delete(asset_id)
            raise AssetExpired(asset_id)
        return self._with_cached_url(asset)

    async def delete(self, asset_id: str) -> None:
        self._assets.pop(asset_id, None)
        self._urls.pop(asset_id, None)

    async def all(self) -> list[Asset]:
        return [self._with_cached_url(a) for a in self._assets.values()]

    async def get_cached_download_url(self, asset_id: str) -> CachedDownloadUrl | None:
        cached = self._urls.get(asset_id)
        if cached is None:
            return None
        if is_expired(cached.expires, self.now()):
            self._urls.pop(asset_id, None)
            return None
        return cached

    async def save_cached_download_url(self, asset_id: str, url: str, expires_s: int | None) -> None:
        # Cache rides on the record, so no record means nothing to cache
        if asset_id not in self._assets:
            return
        self._urls[asset_id] = CachedDownloadUrl(
            url=url,
            expires=calculate_expires(expires_s * 1000 if expires_s else 0, self.now()),
        )

    async def evict_cached_download_url(self, asset_id: str) -> None:
        self._urls.pop(asset_id, None)

    def _with_cached_url(self, asset: Asset) -> Asset:
        cached = self._urls.get(asset.id)
        if cached is None:
            return asset
        return asset.model_copy(update={"presigned_url": cached.url, "presigned_url_expires": cached.expires})
