"""Prometheus metrics: request count by route/status, latency, upload grants, download-URL mints, pruning."""
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total requests",
    ["method", "path", "status_class"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "Request latency",
    ["method", "path"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)
UPLOAD_GRANTS_TOTAL = Counter(
    "assetgate_upload_grants_total",
    "Presigned upload grants issued",
    ["upload_type"],
)
DOWNLOAD_URL_MINT_TOTAL = Counter(
    "assetgate_download_url_mint_total",
    "Presigned download URLs minted",
)
DOWNLOAD_URL_CACHE_HITS_TOTAL = Counter(
    "assetgate_download_url_cache_hits_total",
    "Download URLs served from the store cache",
)
PRUNED_OBJECTS_TOTAL = Counter(
    "assetgate_pruned_objects_total",
    "Objects removed by pruning",
    ["result"],  # deleted | failed
)


def _status_class(status: int) -> str:
    if status < 200:
        return "1xx"
    if status < 300:
        return "2xx"
    if status < 400:
        return "3xx"
    if status < 500:
        return "4xx"
    return "5xx"


def record_request(method: str, path: str, status_code: int, latency_seconds: float) -> None:
    path = path or "/"
    sc = _status_class(status_code)
    REQUEST_COUNT.labels(method=method, path=path, status_class=sc).inc()
    REQUEST_LATENCY.labels(method=method, path=path).observe(latency_seconds)


def record_upload_grant(upload_type: str) -> None:
    UPLOAD_GRANTS_TOTAL.labels(upload_type=upload_type).inc()


def record_download_url_mint() -> None:
    DOWNLOAD_URL_MINT_TOTAL.inc()


def record_download_url_cache_hit() -> None:
    DOWNLOAD_URL_CACHE_HITS_TOTAL.inc()


def record_pruned(deleted: int, failed: int) -> None:
    if deleted:
        PRUNED_OBJECTS_TOTAL.labels(result="deleted").inc(deleted)
    if failed:
        PRUNED_OBJECTS_TOTAL.labels(result="failed").inc(failed)


def get_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
