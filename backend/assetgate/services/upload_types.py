"""
Upload type policies: per-type size limits, expirations, paths and metadata.

A policy is either static (StaticPolicy) or computed from the request
(ComputedPolicy). Both resolve to an UploadTypeConfig, which is then layered
over the default type and the global OrchestratorConfig to give an
EffectivePolicy with every field filled in.
"""
import inspect
import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from assetgate.core.config import Settings
from assetgate.core.errors import UnknownUploadType
from assetgate.services.types import PostPolicy, RequestContext

DEFAULT_UPLOAD_TYPE = "default"
DEFAULT_EXPIRATION_SECONDS = 300
DEFAULT_PRESIGNED_URL_EXPIRATION_SECONDS = 3600
MIN_MAX_SIZE_BYTES = 1024

PostPolicyHook = Callable[[PostPolicy], PostPolicy | Awaitable[PostPolicy]]

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(b|kb|mb|gb|tb|pb)?\s*$", re.IGNORECASE)
_UNITS = {
    "b": 1,
    "kb": 1024,
    "mb": 1024**2,
    "gb": 1024**3,
    "tb": 1024**4,
    "pb": 1024**5,
}


def parse_size(value: int | str) -> int:
    """Bytes from an int or a human string ("2mb", "1.5 GB"). Raise ValueError if unparseable."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid size: {value!r}")
    if isinstance(value, int):
        return value
    m = _SIZE_RE.match(value)
    if not m:
        raise ValueError(f"Invalid size: {value!r}")
    unit = (m.group(2) or "b").lower()
    return int(float(m.group(1)) * _UNITS[unit])


def sanitize_name(name: str | None) -> str:
    """Last path component of a client-supplied filename, without control chars."""
    if not name or not name.strip():
        return ""
    base = name.strip().split("/")[-1].split("\\")[-1]
    return re.sub(r"[\x00-\x1f\x7f]", "", base)


def build_path(upload_type: str, asset_id: str, name: str | None) -> str:
    return "/".join(part for part in (upload_type, asset_id, sanitize_name(name)) if part)


def merge_metadata(requested: Mapping[str, Any] | None, policy: Mapping[str, Any] | None) -> dict[str, Any]:
    """Caller metadata overlaid with policy metadata; policy wins on key conflict."""
    merged: dict[str, Any] = {}
    for source in (requested, policy):
        if source:
            for key, value in source.items():
                merged[key] = value
    return merged


class UploadTypeConfig(BaseModel):
    """Per-type overrides. None means "fall back to the default type, then the global config"."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    max_size: int | str | None = None
    expiration_seconds: int | None = Field(default=None, ge=1)
    verify_assets: bool | None = None
    verify_assets_expiration_seconds: int | None = Field(default=None, ge=1)
    presigned_url_expiration_seconds: int | None = Field(default=None, ge=1)
    include_object_path_in_response: bool | None = None
    include_metadata_in_response: bool | None = None
    path: str | None = None
    metadata: dict[str, Any] | None = None
    post_policy: PostPolicyHook | None = None


class OrchestratorConfig(BaseModel):
    """Global defaults applied beneath every upload type."""

    model_config = ConfigDict(extra="forbid")

    bucket: str
    region: str = "us-east-1"
    max_size: int | str = "1mb"
    expiration_seconds: int | None = Field(default=None, ge=1)
    verify_assets: bool = False
    verify_assets_expiration_seconds: int | None = Field(default=None, ge=1)
    presigned_url_expiration_seconds: int | None = Field(default=None, ge=1)
    include_object_path_in_response: bool = False

    @classmethod
    def from_settings(cls, settings: Settings, bucket: str) -> "OrchestratorConfig":
        return cls(
            bucket=bucket,
            region=settings.s3_region,
            max_size=settings.max_size,
            expiration_seconds=settings.expiration_seconds,
            verify_assets=settings.verify_assets,
            verify_assets_expiration_seconds=settings.verify_assets_expiration_seconds,
            presigned_url_expiration_seconds=settings.presigned_url_expiration_seconds,
            include_object_path_in_response=settings.include_object_path_in_response,
        )


@dataclass(frozen=True)
class StaticPolicy:
    config: UploadTypeConfig

    async def resolve(self, args: Any, context: RequestContext) -> UploadTypeConfig:
        return self.config


@dataclass(frozen=True)
class ComputedPolicy:
    """Policy computed per request: fn(args, context) -> UploadTypeConfig (sync or async)."""

    fn: Callable[[Any, RequestContext], UploadTypeConfig | Awaitable[UploadTypeConfig]]

    async def resolve(self, args: Any, context: RequestContext) -> UploadTypeConfig:
        result = self.fn(args, context)
        if inspect.isawaitable(result):
            result = await result
        return result


UploadTypePolicy = StaticPolicy | ComputedPolicy


def as_policy(entry: "UploadTypePolicy | UploadTypeConfig | dict | Callable") -> UploadTypePolicy:
    if isinstance(entry, (StaticPolicy, ComputedPolicy)):
        return entry
    if isinstance(entry, UploadTypeConfig):
        return StaticPolicy(entry)
    if isinstance(entry, dict):
        return StaticPolicy(UploadTypeConfig.model_validate(entry))
    if callable(entry):
        return ComputedPolicy(entry)
    raise TypeError(f"Unsupported upload type policy: {entry!r}")


class EffectivePolicy(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    upload_type: str
    max_size_bytes: int
    expiration_seconds: int
    verify_assets: bool
    verify_assets_expiration_seconds: int
    presigned_url_expiration_seconds: int
    include_object_path_in_response: bool
    include_metadata_in_response: bool
    path: str | None = None
    metadata: dict[str, Any]
    post_policy: PostPolicyHook | None = None


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


class UploadTypeRegistry:
    """Resolves an upload type name to its EffectivePolicy."""

    def __init__(
        self,
        config: OrchestratorConfig,
        upload_types: Mapping[str, Any] | None = None,
    ) -> None:
        self._config = config
        self._policies: dict[str, UploadTypePolicy] = {
            name: as_policy(entry) for name, entry in (upload_types or {}).items()
        }

    def is_registered(self, upload_type: str) -> bool:
        return upload_type == DEFAULT_UPLOAD_TYPE or upload_type in self._policies

    async def resolve(
        self,
        upload_type: str | None,
        args: Any = None,
        context: RequestContext | None = None,
    ) -> EffectivePolicy:
        name = upload_type or DEFAULT_UPLOAD_TYPE
        if not self.is_registered(name):
            raise UnknownUploadType(name)
        context = context or RequestContext()

        default = await self._resolve_entry(DEFAULT_UPLOAD_TYPE, args, context)
        named = default if name == DEFAULT_UPLOAD_TYPE else await self._resolve_entry(name, args, context)
        g = self._config

        expiration_seconds = _first(named.expiration_seconds, default.expiration_seconds, g.expiration_seconds, DEFAULT_EXPIRATION_SECONDS)
        return EffectivePolicy(
            upload_type=name,
            max_size_bytes=parse_size(_first(named.max_size, default.max_size, g.max_size)),
            expiration_seconds=expiration_seconds,
            verify_assets=bool(_first(named.verify_assets, default.verify_assets, g.verify_assets)),
            verify_assets_expiration_seconds=_first(
                named.verify_assets_expiration_seconds,
                default.verify_assets_expiration_seconds,
                g.verify_assets_expiration_seconds,
                expiration_seconds,
            ),
            presigned_url_expiration_seconds=_first(
                named.presigned_url_expiration_seconds,
                default.presigned_url_expiration_seconds,
                g.presigned_url_expiration_seconds,
                DEFAULT_PRESIGNED_URL_EXPIRATION_SECONDS,
            ),
            include_object_path_in_response=bool(
                _first(named.include_object_path_in_response, default.include_object_path_in_response, g.include_object_path_in_response)
            ),
            include_metadata_in_response=bool(
                _first(named.include_metadata_in_response, default.include_metadata_in_response, False)
            ),
            path=named.path,
            metadata=merge_metadata(default.metadata, named.metadata) if named is not default else dict(named.metadata or {}),
            post_policy=named.post_policy,
        )

    async def _resolve_entry(self, name: str, args: Any, context: RequestContext) -> UploadTypeConfig:
        policy = self._policies.get(name)
        if policy is None:
            return UploadTypeConfig()
        return await policy.resolve(args, context)
