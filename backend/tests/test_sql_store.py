"""SQL asset store over SQLite (aiosqlite): records, lazy TTL, download-URL cache, orchestrator end to end."""
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from assetgate.core.errors import AlreadyExists, AssetExpired
from assetgate.services.orchestrator import AssetOrchestrator
from assetgate.services.types import Asset

from tests.conftest import BUCKET, UPLOAD_TYPES


def _asset(asset_id: str, **kw) -> Asset:
    return Asset(
        id=asset_id,
        bucket=BUCKET,
        path=f"default/{asset_id}",
        upload_type="default",
        file_type="image/png",
        **kw,
    )


@pytest.mark.asyncio
async def test_upsert_and_find(sql_store):
    stored = await sql_store.upsert(_asset("a1", metadata={"k": "v"}))
    assert stored.id == "a1"
    assert stored.created_at is not None
    found = await sql_store.find("a1")
    assert found.path == "default/a1"
    assert found.metadata == {"k": "v"}
    assert found.verified is None
    assert found.expires is None
    assert await sql_store.find("nope") is None


@pytest.mark.asyncio
async def test_provisional_record_expires_lazily(sql_store, clock):
    await sql_store.upsert(_asset("p1", verified=False), ttl_ms=10_000)
    clock.advance(5)
    assert (await sql_store.find("p1")).expires == clock.now + 5_000
    clock.advance(6)
    with pytest.raises(AssetExpired):
        await sql_store.find("p1")
    assert await sql_store.find("p1") is None


@pytest.mark.asyncio
async def test_verified_upsert_clears_expiry(sql_store, clock):
    await sql_store.upsert(_asset("p2", verified=False), ttl_ms=10_000)
    asset = await sql_store.find("p2")
    await sql_store.upsert(asset.mark_verified(), 0)
    clock.advance(60)
    found = await sql_store.find("p2")
    assert found.verified is True
    assert found.expires is None


@pytest.mark.asyncio
async def test_download_url_cache(sql_store, clock):
    await sql_store.upsert(_asset("c1"))
    assert await sql_store.get_cached_download_url("c1") is None

    await sql_store.save_cached_download_url("c1", "https://signed/1", 3600)
    cached = await sql_store.get_cached_download_url("c1")
    assert cached.url == "https://signed/1"
    assert cached.expires == clock.now + 3_600_000
    assert (await sql_store.find("c1")).presigned_url == "https://signed/1"

    await sql_store.evict_cached_download_url("c1")
    assert await sql_store.get_cached_download_url("c1") is None


@pytest.mark.asyncio
async def test_delete_and_all(sql_store):
    await sql_store.upsert(_asset("d1"))
    await sql_store.upsert(_asset("d2"))
    await sql_store.delete("d1")
    await sql_store.delete("d1")
    assert [a.id for a in await sql_store.all()] == ["d2"]


@pytest.mark.asyncio
async def test_orchestrator_lifecycle_on_sql(sql_store, object_store, config, clock):
    orch = AssetOrchestrator(
        object_store=object_store, store=sql_store, config=config, upload_types=UPLOAD_TYPES, clock=clock
    )
    await orch.init()

    grant = await orch.issue_upload_grant(
        {"fileType": "image/png", "uploadType": "verified", "name": "a.png", "metadata": {"user": "u1"}}
    )
    await object_store.put_object(BUCKET, grant.data["key"], b"x")
    [verified] = await orch.verify_asset({"id": grant.id})
    assert verified.verified is True

    [first] = await orch.resolve_asset_access({"id": grant.id})
    [second] = await orch.resolve_asset_access({"id": grant.id})
    assert first.url == second.url
    assert object_store.download_urls_minted == 1

    await object_store.put_object(BUCKET, "default/orphan/x.bin", b"x")
    result = await orch.prune_assets()
    assert result.deleted_paths == ["default/orphan/x.bin"]

    [deleted] = await orch.delete_asset({"id": grant.id})
    assert deleted.path == f"verified/{grant.id}/a.png"
    assert await sql_store.find(grant.id) is None


@pytest.mark.asyncio
async def test_concurrent_insert_maps_to_already_exists(sql_store, monkeypatch):
    await sql_store.upsert(_asset("race"))

    # Another writer inserted between our read and our commit
    async def stale_get(self, entity, ident, **kw):
        return None

    monkeypatch.setattr(AsyncSession, "get", stale_get)
    with pytest.raises(AlreadyExists):
        await sql_store.upsert(_asset("race"))
