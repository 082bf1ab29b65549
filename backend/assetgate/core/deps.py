"""FastAPI dependencies: orchestrator construction and lookup, cron key guard."""
import hmac
from collections.abc import Mapping
from typing import Any

from fastapi import HTTPException, Query, Request, status

from assetgate.core.config import Settings, get_settings
from assetgate.services.naming import bucket_from_env
from assetgate.services.orchestrator import AssetOrchestrator
from assetgate.services.storage import get_object_store
from assetgate.services.store import get_asset_store
from assetgate.services.types import RequestContext
from assetgate.services.upload_types import OrchestratorConfig


def build_orchestrator(
    settings: Settings | None = None,
    upload_types: Mapping[str, Any] | None = None,
) -> AssetOrchestrator:
    """Wire object store, metadata store and global defaults from settings."""
    settings = settings or get_settings()
    bucket = settings.s3_bucket or bucket_from_env(settings.project_name)
    return AssetOrchestrator(
        object_store=get_object_store(settings),
        store=get_asset_store(settings),
        config=OrchestratorConfig.from_settings(settings, bucket),
        upload_types=upload_types,
    )


def get_orchestrator(request: Request) -> AssetOrchestrator:
    """The orchestrator built once at startup (see main.lifespan)."""
    return request.app.state.orchestrator


async def get_request_context(request: Request) -> RequestContext:
    try:
        body = await request.json()
    except ValueError:
        body = None
    return RequestContext(headers=dict(request.headers), body=body)


def require_cron_key(key: str | None = Query(None)) -> None:
    """Guard the pruning endpoint. 401 unless CRON_KEY is set and matches ?key=."""
    expected = get_settings().cron_key
    if not expected or not key or not hmac.compare_digest(key, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
