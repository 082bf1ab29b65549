"""S3 object store: presigned POST/GET, head, list, delete via boto3. Imported only when STORAGE_BACKEND=s3 (avoids boto3 in memory mode)."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from assetgate.core.config import Settings, get_settings
from assetgate.services.storage.base import ObjectStoreGateway
from assetgate.services.types import ObjectInfo, PostPolicy, PresignedPost

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


def _get_client(settings: Settings):
    import boto3
    from botocore.config import Config

    cfg = Config(
        retries={"max_attempts": 8, "mode": "standard"},
        region_name=settings.s3_region,
        signature_version="s3v4",
    )
    return boto3.client(
        "s3",
        endpoint_url=settings.s3_endpoint_url,
        aws_access_key_id=settings.s3_access_key_id,
        aws_secret_access_key=settings.s3_secret_access_key,
        config=cfg,
    )


def _error_code(e: Exception) -> str | None:
    resp = getattr(e, "response", None)
    return resp.get("Error", {}).get("Code") if isinstance(resp, dict) else None


class S3ObjectStore(ObjectStoreGateway):
    """S3 or S3-compatible (Minio) backend. boto3 is blocking, so each call runs in a worker thread."""

    def __init__(self, settings: Settings | None = None, client=None) -> None:
        settings = settings or get_settings()
        self._client = client or _get_client(settings)

    async def bucket_exists(self, bucket: str) -> bool:
        try:
            await asyncio.to_thread(self._client.head_bucket, Bucket=bucket)
        except Exception as e:
            if _error_code(e) in _NOT_FOUND_CODES + ("NoSuchBucket",):
                return False
            raise
        return True

    async def create_bucket(self, bucket: str, region: str) -> None:
        kwargs: dict = {"Bucket": bucket}
        # us-east-1 rejects an explicit LocationConstraint
        if region and region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
        await asyncio.to_thread(self._client.create_bucket, **kwargs)
        logger.info("created bucket %s in %s", bucket, region)

    async def head_object(self, bucket: str, path: str) -> bool:
        try:
            await asyncio.to_thread(self._client.head_object, Bucket=bucket, Key=path)
        except Exception as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            raise
        return True

    async def create_upload_policy(self, policy: PostPolicy) -> PresignedPost:
        fields = {**policy.fields, "Content-Type": policy.content_type}
        conditions = [
            {"Content-Type": policy.content_type},
            ["content-length-range", policy.min_bytes, policy.max_bytes],
            *policy.conditions,
        ]
        resp = await asyncio.to_thread(
            self._client.generate_presigned_post,
            Bucket=policy.bucket,
            Key=policy.key,
            Fields=fields,
            Conditions=conditions,
            ExpiresIn=policy.expires_seconds,
        )
        return PresignedPost(url=resp["url"], fields=resp["fields"])

    async def create_download_url(self, bucket: str, path: str, expires_s: int) -> str:
        return await asyncio.to_thread(
            self._client.generate_presigned_url,
            "get_object",
            Params={"Bucket": bucket, "Key": path},
            ExpiresIn=max(1, expires_s),
        )

    async def list_objects(self, bucket: str, prefix: str = "") -> AsyncIterator[ObjectInfo]:
        paginator = self._client.get_paginator("list_objects_v2")
        pages = iter(paginator.paginate(Bucket=bucket, Prefix=prefix))
        while True:
            page = await asyncio.to_thread(next, pages, None)
            if page is None:
                return
            for obj in page.get("Contents", []):
                yield ObjectInfo(
                    path=obj["Key"],
                    size=obj.get("Size"),
                    last_modified=obj.get("LastModified"),
                )

    async def delete_object(self, bucket: str, path: str) -> None:
        await asyncio.to_thread(self._client.delete_object, Bucket=bucket, Key=path)
