"""
Value types shared by the orchestrator, the stores and the object store gateways.

Asset is the one record type persisted per upload; everything else is a request
or response shape. Records change through explicit field-level updates
(mark_verified, model_copy with named fields) rather than ad-hoc dict merging.
"""
import time
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


def now_ms() -> int:
    """Wall clock in epoch milliseconds; every expiry in the system uses this unit."""
    return int(time.time() * 1000)


def calculate_expires(ttl_ms: int | None, now: int) -> int | None:
    """Absolute expiry for a TTL in ms; 0/None means the record never expires."""
    if not ttl_ms:
        return None
    return now + ttl_ms


def is_expired(expires: int | None, now: int) -> bool:
    return bool(expires) and expires < now


def id_from_path(path: str) -> str:
    """Asset id is the second-to-last segment of {upload_type}/{id}/{name}."""
    parts = path.strip("/").split("/")
    if len(parts) < 2:
        return parts[-1]
    return parts[-2]


class Asset(BaseModel):
    """Durable record of one intended or completed upload."""

    model_config = ConfigDict(extra="forbid")

    id: str
    bucket: str
    path: str
    upload_type: str
    file_type: str
    name: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    # None: verification not used; False: provisional; True: confirmed
    verified: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    presigned_url: str | None = None
    presigned_url_expires: int | None = None
    expires: int | None = None

    def is_provisional_expired(self, now: int) -> bool:
        return self.verified is False and is_expired(self.expires, now)

    def mark_verified(self) -> "Asset":
        return self.model_copy(update={"verified": True, "expires": None})


class AssetRef(BaseModel):
    """Reference to an asset by id, by object path, or both."""

    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    path: str | None = None

    @model_validator(mode="after")
    def require_id_or_path(self) -> "AssetRef":
        if not self.id and not self.path:
            raise ValueError("id or path is required")
        return self

    def resolved_id(self) -> str:
        return self.id or id_from_path(self.path or "")


class GrantRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: str | None = None
    upload_type: str | None = Field(default=None, alias="uploadType")
    name: str | None = None
    file_type: str | None = Field(default=None, alias="fileType")
    metadata: dict[str, Any] | None = None


class RequestContext(BaseModel):
    """What computed upload-type policies may inspect about the incoming request."""

    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None


class UploadGrant(BaseModel):
    id: str
    url: str
    data: dict[str, str]
    path: str | None = None


class AssetAccess(BaseModel):
    id: str
    url: str
    metadata: dict[str, Any] | None = None


class DeletedAsset(BaseModel):
    id: str
    path: str


class PostPolicy(BaseModel):
    """Unsigned presigned-POST descriptor; upload-type hooks may rewrite it before signing."""

    bucket: str
    key: str
    content_type: str
    min_bytes: int = 1
    max_bytes: int
    expires_seconds: int
    fields: dict[str, str] = Field(default_factory=dict)
    conditions: list[Any] = Field(default_factory=list)


class PresignedPost(BaseModel):
    url: str
    fields: dict[str, str]


class ObjectInfo(BaseModel):
    path: str
    size: int | None = None
    last_modified: datetime | None = None


class CachedDownloadUrl(BaseModel):
    url: str
    expires: int | None = None


class PruneResult(BaseModel):
    deleted_paths: list[str] = Field(default_factory=list)
    deleted_ids: list[str] = Field(default_factory=list)
    failed_paths: list[str] = Field(default_factory=list)
