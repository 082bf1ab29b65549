"""Object store gateway interface: presigned POST/GET, existence check, listing and deletion. Implementations: memory (dev/tests) or S3."""
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from assetgate.services.types import ObjectInfo, PostPolicy, PresignedPost


class ObjectStoreGateway(ABC):
    """Abstract object store. Every call is a suspension point; errors other than "not found" propagate."""

    @abstractmethod
    async def bucket_exists(self, bucket: str) -> bool:
        ...

    @abstractmethod
    async def create_bucket(self, bucket: str, region: str) -> None:
        ...

    @abstractmethod
    async def head_object(self, bucket: str, path: str) -> bool:
        """True if an object exists at path, False if the store reports it missing."""
        ...

    @abstractmethod
    async def create_upload_policy(self, policy: PostPolicy) -> PresignedPost:
        """Sign a POST policy for a direct browser/client upload: form fields plus target URL."""
        ...

    @abstractmethod
    async def create_download_url(self, bucket: str, path: str, expires_s: int) -> str:
        ...

    @abstractmethod
    def list_objects(self, bucket: str, prefix: str = "") -> AsyncIterator[ObjectInfo]:
        """Lazily page through every object under prefix."""
        ...

    @abstractmethod
    async def delete_object(self, bucket: str, path: str) -> None:
        ...
