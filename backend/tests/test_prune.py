"""Pruning: reconcile bucket objects against records."""
import pytest

from assetgate.core.errors import StoreRequired
from assetgate.services.orchestrator import AssetOrchestrator
from assetgate.services.storage.memory import MemoryObjectStore

from tests.conftest import BUCKET, UPLOAD_TYPES


@pytest.mark.asyncio
async def test_prune_scenario(orchestrator, object_store, asset_store):
    # Untracked object
    await object_store.put_object(BUCKET, "default/orphan/x.bin", b"x")
    # Provisional, uploaded but never verified
    pending = await orchestrator.issue_upload_grant({"fileType": "image/png", "uploadType": "verified", "name": "p.png"})
    await object_store.put_object(BUCKET, pending.data["key"], b"p")
    # Verified
    done = await orchestrator.issue_upload_grant({"fileType": "image/png", "uploadType": "verified", "name": "d.png"})
    await object_store.put_object(BUCKET, done.data["key"], b"d")
    await orchestrator.verify_asset({"id": done.id})
    # Not using verification
    plain = await orchestrator.issue_upload_grant({"fileType": "image/png", "name": "n.png"})
    await object_store.put_object(BUCKET, plain.data["key"], b"n")

    result = await orchestrator.prune_assets()

    assert sorted(result.deleted_paths) == sorted(["default/orphan/x.bin", pending.data["key"]])
    assert result.deleted_ids == [pending.id]
    assert result.failed_paths == []
    assert await asset_store.find(pending.id) is None
    assert await asset_store.find(done.id) is not None
    assert await asset_store.find(plain.id) is not None
    assert await object_store.head_object(BUCKET, done.data["key"])
    assert await object_store.head_object(BUCKET, plain.data["key"])


@pytest.mark.asyncio
async def test_prune_twice_is_idempotent(orchestrator, object_store):
    await object_store.put_object(BUCKET, "default/orphan/x.bin", b"x")
    await orchestrator.prune_assets()
    result = await orchestrator.prune_assets()
    assert result.deleted_paths == []
    assert result.deleted_ids == []


@pytest.mark.asyncio
async def test_prune_leaves_records_without_objects(orchestrator, asset_store):
    # Granted, never uploaded: nothing in the bucket to reconcile
    grant = await orchestrator.issue_upload_grant({"fileType": "image/png", "uploadType": "verified"})
    result = await orchestrator.prune_assets()
    assert result.deleted_paths == []
    assert await asset_store.find(grant.id) is not None


@pytest.mark.asyncio
async def test_failed_object_delete_keeps_record(asset_store, config, clock):
    class StuckStore(MemoryObjectStore):
        async def delete_object(self, bucket, path):
            if path.endswith("stuck.png"):
                raise RuntimeError("access denied")
            await super().delete_object(bucket, path)

    object_store = StuckStore()
    orch = AssetOrchestrator(
        object_store=object_store, store=asset_store, config=config, upload_types=UPLOAD_TYPES, clock=clock
    )
    await orch.init()
    stuck = await orch.issue_upload_grant({"fileType": "image/png", "uploadType": "verified", "name": "stuck.png"})
    await object_store.put_object(BUCKET, stuck.data["key"], b"s")
    await object_store.put_object(BUCKET, "default/orphan/x.bin", b"x")

    result = await orch.prune_assets()

    assert result.failed_paths == [stuck.data["key"]]
    assert result.deleted_paths == ["default/orphan/x.bin"]
    assert result.deleted_ids == []
    assert await asset_store.find(stuck.id) is not None


@pytest.mark.asyncio
async def test_prune_requires_store(storeless_orchestrator):
    with pytest.raises(StoreRequired):
        await storeless_orchestrator.prune_assets()
