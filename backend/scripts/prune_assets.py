"""
Prune orphaned objects: delete every object in the bucket with no asset record, or whose
record was never verified. Intended for cron (e.g. hourly).
Run from backend/: python scripts/prune_assets.py [--dry-run]
"""
import argparse
import asyncio
import logging
import sys

from assetgate.core.config import get_settings
from assetgate.core.deps import build_orchestrator
from assetgate.services.store.sql import SqlAssetStore

logger = logging.getLogger("assetgate.prune")


async def dry_run() -> int:
    orchestrator = build_orchestrator(get_settings())
    if orchestrator.store is None:
        print("No metadata store configured (STORE_BACKEND=none); pruning needs one.", file=sys.stderr)
        return 1
    by_path = {a.path: a for a in await orchestrator.store.all()}
    count = 0
    async for obj in orchestrator.object_store.list_objects(orchestrator.bucket):
        asset = by_path.get(obj.path)
        if asset is None or asset.verified is False:
            reason = "untracked" if asset is None else "unverified"
            print(f"would delete {obj.path} ({reason})")
            count += 1
    print(f"{count} object(s) would be pruned from {orchestrator.bucket}.")
    return 0


async def main() -> int:
    settings = get_settings()
    orchestrator = build_orchestrator(settings)
    if settings.db_auto_create and isinstance(orchestrator.store, SqlAssetStore):
        await orchestrator.store.create_tables()
    result = await orchestrator.prune_assets()
    print(
        f"Pruned {len(result.deleted_paths)} object(s) and {len(result.deleted_ids)} record(s) "
        f"from {orchestrator.bucket}; {len(result.failed_paths)} failed."
    )
    for path in result.failed_paths:
        print(f"  failed: {path}", file=sys.stderr)
    return 1 if result.failed_paths else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Delete untracked or unverified objects from the asset bucket")
    parser.add_argument("--dry-run", action="store_true", help="List candidates without deleting")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    sys.exit(asyncio.run(dry_run() if args.dry_run else main()))
