"""Asset deletion by id and by path."""
import pytest

from assetgate.core.errors import AssetNotFound, StoreRequired

from tests.conftest import BUCKET


@pytest.mark.asyncio
async def test_delete_by_id_removes_record_and_object(orchestrator, object_store, asset_store):
    grant = await orchestrator.issue_upload_grant({"fileType": "image/png", "name": "a.png"})
    await object_store.put_object(BUCKET, grant.data["key"], b"x")
    await orchestrator.resolve_asset_access({"id": grant.id})

    [deleted] = await orchestrator.delete_asset({"id": grant.id})
    assert deleted.id == grant.id
    assert deleted.path == f"default/{grant.id}/a.png"
    assert await asset_store.find(grant.id) is None
    assert await asset_store.get_cached_download_url(grant.id) is None
    assert not await object_store.head_object(BUCKET, deleted.path)


@pytest.mark.asyncio
async def test_delete_by_path(orchestrator, object_store, asset_store):
    grant = await orchestrator.issue_upload_grant({"fileType": "image/png", "name": "a.png"})
    path = grant.data["key"]
    await object_store.put_object(BUCKET, path, b"x")

    [deleted] = await orchestrator.delete_asset({"path": path})
    assert deleted.id == grant.id
    assert await asset_store.find(grant.id) is None
    assert not await object_store.head_object(BUCKET, path)


@pytest.mark.asyncio
async def test_delete_by_path_without_store(storeless_orchestrator, object_store):
    await object_store.put_object(BUCKET, "image/abc/a.png", b"x")
    [deleted] = await storeless_orchestrator.delete_asset({"path": "image/abc/a.png"})
    assert deleted.id == "abc"
    assert not await object_store.head_object(BUCKET, "image/abc/a.png")


@pytest.mark.asyncio
async def test_delete_by_id_without_store(storeless_orchestrator):
    with pytest.raises(StoreRequired):
        await storeless_orchestrator.delete_asset({"id": "abc"})


@pytest.mark.asyncio
async def test_delete_unknown_id(orchestrator):
    with pytest.raises(AssetNotFound):
        await orchestrator.delete_asset({"id": "missing"})


@pytest.mark.asyncio
async def test_delete_path_twice_is_harmless(orchestrator, object_store):
    await object_store.put_object(BUCKET, "default/xyz/b.txt", b"x")
    await orchestrator.delete_asset({"path": "default/xyz/b.txt"})
    [again] = await orchestrator.delete_asset({"path": "default/xyz/b.txt"})
    assert again.id == "xyz"


@pytest.mark.asyncio
async def test_delete_many(orchestrator, object_store):
    grants = [await orchestrator.issue_upload_grant({"fileType": "text/plain"}) for _ in range(3)]
    deleted = await orchestrator.delete_asset([{"id": g.id} for g in grants])
    assert [d.id for d in deleted] == [g.id for g in grants]


@pytest.mark.asyncio
async def test_delete_nameless_asset_by_path(orchestrator, object_store, asset_store):
    bystander = await orchestrator.issue_upload_grant({"fileType": "image/png", "id": "default", "name": "d.png"})
    await orchestrator.issue_upload_grant({"fileType": "image/png", "id": "abc"})
    await object_store.put_object(BUCKET, "default/abc", b"x")

    [deleted] = await orchestrator.delete_asset({"path": "default/abc"})
    assert deleted.id == "abc"
    assert await asset_store.find("abc") is None
    assert not await object_store.head_object(BUCKET, "default/abc")
    assert (await asset_store.find(bystander.id)).path == "default/default/d.png"

    regrant = await orchestrator.issue_upload_grant({"fileType": "image/png", "id": "abc"})
    assert regrant.id == "abc"


@pytest.mark.asyncio
async def test_delete_path_leaves_record_at_other_path(orchestrator, object_store, asset_store):
    await orchestrator.issue_upload_grant({"fileType": "image/png", "id": "abc", "name": "a.png"})
    await object_store.put_object(BUCKET, "default/abc/other.png", b"x")

    [deleted] = await orchestrator.delete_asset({"path": "default/abc/other.png"})
    assert deleted.id == "abc"
    assert (await asset_store.find("abc")).path == "default/abc/a.png"
