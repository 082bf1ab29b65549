"""Metadata store interface: keyed asset records with TTL, plus the per-asset download-URL cache."""
from abc import ABC, abstractmethod
from collections.abc import Callable

from assetgate.services.types import Asset, CachedDownloadUrl, now_ms


class AssetStore(ABC):
    """
    Asset records keyed by id.

    find() must treat a provisional record (verified is False) whose expiry has
    passed as dead: delete it and raise AssetExpired. Expiry is only evaluated
    lazily at read time; nothing is evicted in the background.
    """

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self._clock = clock

    def now(self) -> int:
        return self._clock()

    @abstractmethod
    async def upsert(self, asset: Asset, ttl_ms: int = 0) -> Asset:
        """Insert or replace the record; ttl_ms of 0 clears any expiry. Sets updated_at."""
        ...

    @abstractmethod
    async def find(self, asset_id: str) -> Asset | None:
        ...

    @abstractmethod
    async def delete(self, asset_id: str) -> None:
        ...

    @abstractmethod
    async def all(self) -> list[Asset]:
        """Every record, expired ones included (pruning reconciles them)."""
        ...

    @abstractmethod
    async def get_cached_download_url(self, asset_id: str) -> CachedDownloadUrl | None:
        ...

    @abstractmethod
    async def save_cached_download_url(self, asset_id: str, url: str, expires_s: int | None) -> None:
        ...

    @abstractmethod
    async def evict_cached_download_url(self, asset_id: str) -> None:
        ...
