"""Default bucket name derived from deployment identity (hostname, project, environment)."""
import re

from assetgate.core.config import get_settings

_INVALID = re.compile(r"[^a-z0-9.-]+")
_DASHES = re.compile(r"-{2,}")


def _join(parts: list[str | None]) -> str:
    return "-".join(p.strip() for p in parts if p and p.strip())


def namespace_from_env(project_name: str | None = None) -> str:
    """Deployment identity {hostname}-{project}-{environment}, empty parts dropped; the raw input to bucket_from_env."""
    settings = get_settings()
    return _join([settings.hostname, project_name or settings.project_name, settings.environment])


def bucket_from_env(project_name: str | None = None) -> str:
    """namespace_from_env() squeezed into S3 bucket naming rules (lowercase, 3-63 chars)."""
    name = _INVALID.sub("-", namespace_from_env(project_name).lower())
    name = _DASHES.sub("-", name).strip("-.")[:63].rstrip("-.")
    if len(name) < 3:
        name = f"{name}-assets".strip("-")
    return name
