"""
Asset lifecycle: presigned upload grants, verification, download access, deletion and pruning.

The orchestrator holds no mutable state of its own. Consistency between the
object store and the metadata store is never transactional: grant issuance
pre-checks for collisions (best effort, racy by nature) and pruning later
reconciles whatever the two stores disagree on.
"""
import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, TypeVar
from uuid import uuid4

from assetgate.core.errors import (
    AlreadyExists,
    AssetExpired,
    AssetNotFound,
    MissingFileType,
    ObjectNotFound,
    StoreRequired,
)
from assetgate.core.metrics import (
    record_download_url_cache_hit,
    record_download_url_mint,
    record_pruned,
    record_upload_grant,
)
from assetgate.services.storage.base import ObjectStoreGateway
from assetgate.services.store.base import AssetStore
from assetgate.services.types import (
    Asset,
    AssetAccess,
    AssetRef,
    CachedDownloadUrl,
    DeletedAsset,
    GrantRequest,
    PostPolicy,
    PruneResult,
    RequestContext,
    UploadGrant,
    id_from_path,
    now_ms,
)
from assetgate.services.upload_types import (
    MIN_MAX_SIZE_BYTES,
    OrchestratorConfig,
    UploadTypeRegistry,
    build_path,
    merge_metadata,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Serve a cached download URL only if it stays valid at least this long
_CACHE_BUFFER_MS = 60_000

RefsArg = AssetRef | Mapping[str, Any] | Iterable[AssetRef | Mapping[str, Any]]


def _as_refs(refs: RefsArg) -> list[AssetRef]:
    if isinstance(refs, (AssetRef, Mapping)):
        refs = [refs]
    return [r if isinstance(r, AssetRef) else AssetRef.model_validate(r) for r in refs]


def _candidate_ids(ref: AssetRef) -> list[str]:
    if ref.id:
        return [ref.id]
    parts = [p for p in (ref.path or "").strip("/").split("/") if p]
    candidates = [id_from_path(ref.path or "")]
    if parts and parts[-1] not in candidates:
        candidates.append(parts[-1])
    return candidates


def _new_id() -> str:
    return uuid4().hex


class AssetOrchestrator:
    """Coordinates the object store, the (optional) metadata store and upload type policies."""

    def __init__(
        self,
        object_store: ObjectStoreGateway,
        config: OrchestratorConfig,
        store: AssetStore | None = None,
        upload_types: Mapping[str, Any] | None = None,
        id_factory: Callable[[], str] = _new_id,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.object_store = object_store
        self.store = store
        self.config = config
        self.policies = UploadTypeRegistry(config, upload_types)
        self._id_factory = id_factory
        self._clock = clock

    @property
    def bucket(self) -> str:
        return self.config.bucket

    async def init(self) -> None:
        """Create the root bucket if it does not exist yet."""
        if not await self.object_store.bucket_exists(self.bucket):
            await self.object_store.create_bucket(self.bucket, self.config.region)

    def _require_store(self, feature: str) -> AssetStore:
        if self.store is None:
            raise StoreRequired(feature)
        return self.store

    # ----- Grants -----

    async def issue_upload_grant(
        self,
        request: GrantRequest | Mapping[str, Any],
        context: RequestContext | None = None,
    ) -> UploadGrant:
        if not isinstance(request, GrantRequest):
            request = GrantRequest.model_validate(request)
        if not request.file_type:
            raise MissingFileType()

        asset_id = request.id or self._id_factory()
        policy = await self.policies.resolve(request.upload_type, request, context)
        path = policy.path or build_path(policy.upload_type, asset_id, request.name)

        metadata = merge_metadata(request.metadata, policy.metadata)
        if metadata and self.store is None:
            raise StoreRequired("asset metadata")

        if await self._exists(asset_id, path):
            raise AlreadyExists(asset_id)

        if policy.verify_assets:
            self._require_store("asset verification")
        verify_ttl_ms = policy.verify_assets_expiration_seconds * 1000 if policy.verify_assets else 0

        post_policy = PostPolicy(
            bucket=self.bucket,
            key=path,
            content_type=request.file_type,
            min_bytes=1,
            max_bytes=max(policy.max_size_bytes, MIN_MAX_SIZE_BYTES),
            expires_seconds=policy.expiration_seconds,
        )
        if policy.post_policy is not None:
            post_policy = await _maybe_await(policy.post_policy(post_policy))
        presigned = await self.object_store.create_upload_policy(post_policy)

        if self.store is not None:
            asset = Asset(
                id=asset_id,
                bucket=self.bucket,
                path=path,
                upload_type=policy.upload_type,
                file_type=request.file_type,
                name=request.name,
                metadata=metadata,
                verified=False if policy.verify_assets else None,
            )
            await self.store.upsert(asset, verify_ttl_ms)

        record_upload_grant(policy.upload_type)
        logger.info(
            "issued upload grant id=%s type=%s provisional=%s",
            asset_id,
            policy.upload_type,
            policy.verify_assets,
        )
        return UploadGrant(
            id=asset_id,
            url=presigned.url,
            data=presigned.fields,
            path=path if policy.include_object_path_in_response else None,
        )

    async def _exists(self, asset_id: str, path: str) -> bool:
        """Best-effort collision pre-check against both stores. Not atomic with the later upload."""
        if self.store is not None:
            try:
                if await self.store.find(asset_id) is not None:
                    return True
            except AssetExpired:
                # Dead provisional record, now deleted; the object may still be there
                pass
        try:
            return await self.object_store.head_object(self.bucket, path)
        except Exception:
            # Object stores often signal "missing" with an error; only a confirmed hit counts
            logger.debug("existence check failed for %s", path, exc_info=True)
            return False

    # ----- Verification -----

    async def verify_asset(self, refs: RefsArg, return_exceptions: bool = False) -> list[Asset | BaseException]:
        """Flip provisional records to verified and drop their expiry."""
        store = self._require_store("asset verification")

        async def verify_one(ref: AssetRef) -> Asset:
            asset = await self._find_required(ref, "asset verification")
            verified = await store.upsert(asset.mark_verified(), 0)
            logger.info("verified asset %s", asset.id)
            return verified

        return await self._fan_out(verify_one, _as_refs(refs), return_exceptions)

    # ----- Read access -----

    async def resolve_asset_access(
        self,
        refs: RefsArg,
        context: RequestContext | None = None,
        return_exceptions: bool = False,
    ) -> list[AssetAccess | BaseException]:
        async def resolve_one(ref: AssetRef) -> AssetAccess:
            if ref.path:
                path = ref.path
                asset = await self._match(self.store, ref) if self.store is not None else None
            else:
                asset = await self._find_required(ref, "asset lookup by id")
                if not asset.path:
                    raise AssetNotFound(asset.id)
                path = asset.path
            asset_id = asset.id if asset else ref.resolved_id()

            if not await self.object_store.head_object(self.bucket, path):
                raise ObjectNotFound(path)

            policy = await self.policies.resolve(asset.upload_type if asset else None, ref, context)

            if policy.include_metadata_in_response:
                self._require_store("metadata in responses")
                if asset is None:
                    raise AssetNotFound(asset_id)

            url = await self._download_url(asset, path, policy.presigned_url_expiration_seconds)
            return AssetAccess(
                id=asset_id,
                url=url,
                metadata=asset.metadata if policy.include_metadata_in_response else None,
            )

        return await self._fan_out(resolve_one, _as_refs(refs), return_exceptions)

    async def _download_url(self, asset: Asset | None, path: str, expires_s: int) -> str:
        """Cached per asset record; a path with no record of its own is always minted fresh."""
        if self.store is None or asset is None:
            record_download_url_mint()
            return await self.object_store.create_download_url(self.bucket, path, expires_s)

        cached = await self.store.get_cached_download_url(asset.id)
        if cached is not None and self._is_fresh(cached):
            record_download_url_cache_hit()
            return cached.url
        if cached is not None:
            await self.store.evict_cached_download_url(asset.id)
            logger.debug("evicted stale download url for %s", asset.id)

        url = await self.object_store.create_download_url(self.bucket, path, expires_s)
        record_download_url_mint()
        await self.store.save_cached_download_url(asset.id, url, expires_s)
        return url

    def _is_fresh(self, cached: CachedDownloadUrl) -> bool:
        if cached.expires is None:
            return True
        return cached.expires - self._clock() > _CACHE_BUFFER_MS

    # ----- Lookup / deletion -----

    async def get_asset(self, refs: RefsArg, return_exceptions: bool = False) -> list[Asset | BaseException]:
        self._require_store("asset lookup")

        async def get_one(ref: AssetRef) -> Asset:
            return await self._find_required(ref, "asset lookup")

        return await self._fan_out(get_one, _as_refs(refs), return_exceptions)

    async def delete_asset(self, refs: RefsArg, return_exceptions: bool = False) -> list[DeletedAsset | BaseException]:
        """Delete the record (when one matches), then the object, independently per reference."""

        async def delete_one(ref: AssetRef) -> DeletedAsset:
            asset: Asset | None = None
            if ref.path:
                path = ref.path
                if self.store is not None:
                    try:
                        asset = await self._match(self.store, ref)
                    except AssetExpired:
                        # Record already evicted by the read; the object still goes
                        pass
            else:
                asset = await self._find_required(ref, "asset lookup by id")
                path = asset.path
            asset_id = asset.id if asset else ref.resolved_id()
            if asset is not None:
                await self.store.delete(asset.id)
            await self.object_store.delete_object(self.bucket, path)
            logger.info("deleted asset %s at %s", asset_id, path)
            return DeletedAsset(id=asset_id, path=path)

        return await self._fan_out(delete_one, _as_refs(refs), return_exceptions)

    @staticmethod
    async def _match(store: AssetStore, ref: AssetRef) -> Asset | None:
        """
        Record for a reference. An id reference is a plain lookup; a path reference
        only matches a record stored at exactly that path. Candidate ids for a bare
        path are the second-to-last segment, then the last one ({type}/{id} paths).
        """
        if not ref.path:
            return await store.find(ref.id)
        for candidate in _candidate_ids(ref):
            asset = await store.find(candidate)
            if asset is not None and asset.path == ref.path:
                return asset
        return None

    async def _find_required(self, ref: AssetRef, feature: str) -> Asset:
        store = self._require_store(feature)
        asset = await self._match(store, ref)
        if asset is None:
            raise AssetNotFound(ref.id or ref.path)
        return asset

    # ----- Pruning -----

    async def prune_assets(self) -> PruneResult:
        """
        Full reconciliation sweep: delete every object in the bucket that has no
        record, or whose record is still provisional (verified is False). Records
        that are verified or not using verification are never touched.

        A record is only deleted once its object is gone, so a failed object
        deletion leaves the pair in place for the next sweep.
        """
        store = self._require_store("pruning")

        objects = [obj async for obj in self.object_store.list_objects(self.bucket)]
        by_path = {asset.path: asset for asset in await store.all()}

        candidates: list[tuple[str, Asset | None]] = []
        for obj in objects:
            asset = by_path.get(obj.path)
            if asset is None or asset.verified is False:
                candidates.append((obj.path, asset))

        outcomes = await asyncio.gather(
            *(self.object_store.delete_object(self.bucket, path) for path, _ in candidates),
            return_exceptions=True,
        )

        result = PruneResult()
        orphaned_records: list[str] = []
        for (path, asset), outcome in zip(candidates, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("prune: failed to delete object %s: %s", path, outcome)
                result.failed_paths.append(path)
                continue
            result.deleted_paths.append(path)
            if asset is not None:
                orphaned_records.append(asset.id)

        await asyncio.gather(*(store.delete(asset_id) for asset_id in orphaned_records))
        result.deleted_ids.extend(orphaned_records)

        record_pruned(len(result.deleted_paths), len(result.failed_paths))
        logger.info(
            "prune: listed=%d deleted=%d records=%d failed=%d",
            len(objects),
            len(result.deleted_paths),
            len(result.deleted_ids),
            len(result.failed_paths),
        )
        return result

    @staticmethod
    async def _fan_out(
        fn: Callable[[AssetRef], Awaitable[T]],
        refs: list[AssetRef],
        return_exceptions: bool,
    ) -> list[T | BaseException]:
        """Run fn per reference concurrently. Siblings always finish; then either raise the first failure or return it in place."""
        results = await asyncio.gather(*(fn(ref) for ref in refs), return_exceptions=True)
        if not return_exceptions:
            for r in results:
                if isinstance(r, BaseException):
                    raise r
        return results


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value
