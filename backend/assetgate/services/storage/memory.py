"""In-memory object store: buckets are dicts of path -> bytes. Dev server and tests; URLs are not servable."""
import base64
import hashlib
import json
from collections.abc import AsyncIterator
from datetime import datetime, timezone

from assetgate.services.storage.base import ObjectStoreGateway
from assetgate.services.types import ObjectInfo, PostPolicy, PresignedPost


class MemoryObjectStore(ObjectStoreGateway):
    """Keeps objects in process memory and records what was signed, so callers can inspect it."""

    def __init__(self, base_url: str = "http://memory-s3.local") -> None:
        self.base_url = base_url.rstrip("/")
        self.buckets: dict[str, dict[str, bytes]] = {}
        self.modified: dict[tuple[str, str], datetime] = {}
        self.regions: set[str] = set()
        self.policies: list[PostPolicy] = []
        self.download_urls_minted = 0

    async def bucket_exists(self, bucket: str) -> bool:
        return bucket in self.buckets

    async def create_bucket(self, bucket: str, region: str) -> None:
        self.regions.add(region)
        self.buckets.setdefault(bucket, {})

    async def put_object(self, bucket: str, path: str, data: bytes) -> None:
        """Stand-in for the client-side upload that a presigned POST would perform."""
        self.buckets.setdefault(bucket, {})[path] = data
        self.modified[(bucket, path)] = datetime.now(timezone.utc)

    async def head_object(self, bucket: str, path: str) -> bool:
        return path in self.buckets.get(bucket, {})

    async def create_upload_policy(self, policy: PostPolicy) -> PresignedPost:
        self.policies.append(policy)
        document = {
            "expiration_seconds": policy.expires_seconds,
            "conditions": [
                {"bucket": policy.bucket},
                {"key": policy.key},
                {"Content-Type": policy.content_type},
                ["content-length-range", policy.min_bytes, policy.max_bytes],
                *policy.conditions,
            ],
        }
        encoded = base64.b64encode(json.dumps(document).encode()).decode()
        fields = {
            **policy.fields,
            "key": policy.key,
            "Content-Type": policy.content_type,
            "policy": encoded,
            "x-amz-signature": hashlib.sha256(encoded.encode()).hexdigest(),
        }
        return PresignedPost(url=f"{self.base_url}/{policy.bucket}", fields=fields)

    async def create_download_url(self, bucket: str, path: str, expires_s: int) -> str:
        self.download_urls_minted += 1
        return (
            f"{self.base_url}/{bucket}/{path}"
            f"?X-Amz-Expires={expires_s}&X-Amz-Signature=mem{self.download_urls_minted}"
        )

    async def list_objects(self, bucket: str, prefix: str = "") -> AsyncIterator[ObjectInfo]:
        # Snapshot so deletions during iteration are safe
        for path, data in list(self.buckets.get(bucket, {}).items()):
            if path.startswith(prefix):
                yield ObjectInfo(path=path, size=len(data), last_modified=self.modified.get((bucket, path)))

    async def delete_object(self, bucket: str, path: str) -> None:
        self.buckets.get(bucket, {}).pop(path, None)
        self.modified.pop((bucket, path), None)
