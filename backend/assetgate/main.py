"""FastAPI app: CORS, security headers, upload router, metrics. The orchestrator is built once per app."""
import os

# Optional: overlay env from AWS Secrets Manager (prod). Only when ARN set; never log secrets.
_aws_secrets_arn = os.environ.get("AWS_SECRETS_ARN")
if _aws_secrets_arn:
    try:
        import json
        import boto3
        _sm = boto3.client("secretsmanager")
        _r = _sm.get_secret_value(SecretId=_aws_secrets_arn)
        _data = json.loads(_r["SecretString"]) if _r.get("SecretString") else {}
        for _k, _v in (_data or {}).items():
            if isinstance(_v, str):
                os.environ[_k] = _v
    except Exception:
        # Log exception type only, never secret content
        import logging
        logging.getLogger(__name__).exception("Failed to load AWS Secrets Manager secret")

import logging
from collections.abc import Mapping
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from assetgate.api.uploads import router as upload_router
from assetgate.core.config import get_settings
from assetgate.core.deps import build_orchestrator
from assetgate.core.errors import AssetGateError
from assetgate.core.metrics import get_metrics
from assetgate.core.request_logging import RequestLoggingMiddleware
from assetgate.services.orchestrator import AssetOrchestrator
from assetgate.services.store.sql import SqlAssetStore

logger = logging.getLogger(__name__)


def _configure_logging(log_json: bool) -> None:
    if not log_json:
        return
    request_logger = logging.getLogger("assetgate.request")
    for h in request_logger.handlers[:]:
        request_logger.removeHandler(h)
    h = logging.StreamHandler()
    h.setFormatter(logging.Formatter("%(message)s"))
    request_logger.addHandler(h)
    request_logger.setLevel(logging.INFO)


def create_app(
    orchestrator: AssetOrchestrator | None = None,
    upload_types: Mapping[str, Any] | None = None,
) -> FastAPI:
    """Build the app. Pass an orchestrator to inject one (tests); otherwise it is built from settings at startup."""
    settings = get_settings()
    _configure_logging(settings.log_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        orch = orchestrator or build_orchestrator(settings, upload_types)
        if settings.db_auto_create and isinstance(orch.store, SqlAssetStore):
            await orch.store.create_tables()
        await orch.init()
        app.state.orchestrator = orch
        logger.info("assetgate ready: bucket=%s store=%s", orch.bucket, type(orch.store).__name__)
        yield

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    if orchestrator is not None:
        # Available even when the ASGI lifespan is not run (httpx ASGITransport)
        app.state.orchestrator = orchestrator
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins.split(","),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def security_headers(request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        return response

    @app.exception_handler(AssetGateError)
    async def asset_error_handler(request: Request, exc: AssetGateError):
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    app.include_router(upload_router, prefix="/api")

    @app.get("/healthz")
    async def healthz():
        """Liveness: no store access."""
        return {"status": "ok"}

    @app.get("/readyz")
    async def readyz(request: Request):
        """Readiness: the bucket is reachable."""
        orch: AssetOrchestrator = request.app.state.orchestrator
        try:
            await orch.object_store.bucket_exists(orch.bucket)
        except Exception:
            logger.exception("readiness check failed")
            return JSONResponse(
                status_code=503,
                content={"status": "unavailable", "detail": "object store unreachable"},
            )
        return {"status": "ok"}

    @app.get("/metrics", response_class=Response)
    async def metrics():
        """Prometheus metrics."""
        body, content_type = get_metrics()
        return Response(content=body, media_type=content_type)

    return app


app = create_app()
