"""Structured request logging: request_id, route, status, latency; feeds the Prometheus request metrics."""
import json
import logging
import time
import uuid
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from assetgate.core.config import get_settings
from assetgate.core.logging_redaction import redact_for_log
from assetgate.core.metrics import record_request

logger = logging.getLogger("assetgate.request")

_UNMETERED_PATHS = ("/metrics", "/health", "/healthz", "/readyz")


def _safe_extra(request: Request, status_code: int, latency_ms: float) -> dict[str, Any]:
    extra: dict[str, Any] = {
        "request_id": request.state.request_id,
        "method": request.method,
        "path": request.url.path,
        "query": dict(request.query_params),  # ?key= on /prune is redacted below
        "status_code": status_code,
        "latency_ms": round(latency_ms, 2),
    }
    return redact_for_log(extra)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assign (or propagate) X-Request-ID and log one structured line per request."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = (time.perf_counter() - start) * 1000
        extra = _safe_extra(request, response.status_code, latency_ms)
        if get_settings().log_json:
            logger.info(json.dumps({"event": "request", **extra}))
        else:
            logger.info(
                "request %s %s %s %.2fms",
                request.method,
                request.url.path,
                response.status_code,
                latency_ms,
                extra={"request": extra},
            )
        response.headers["X-Request-ID"] = request_id
        if request.url.path not in _UNMETERED_PATHS:
            record_request(request.method, request.url.path, response.status_code, latency_ms / 1000.0)
        return response
