"""Object store factory: memory (dev) or S3. S3 backend is loaded only when STORAGE_BACKEND=s3 (no boto3 in memory mode)."""
from assetgate.core.config import Settings, get_settings
from assetgate.services.storage.base import ObjectStoreGateway
from assetgate.services.storage.memory import MemoryObjectStore


def get_object_store(settings: Settings | None = None) -> ObjectStoreGateway:
    """Return the configured object store. Avoids importing boto3 when backend is memory."""
    settings = settings or get_settings()
    if settings.storage_backend == "s3":
        from assetgate.services.storage.s3 import S3ObjectStore
        return S3ObjectStore(settings)
    if settings.storage_backend != "memory":
        raise ValueError(f"Unknown storage_backend: {settings.storage_backend}")
    return MemoryObjectStore()
