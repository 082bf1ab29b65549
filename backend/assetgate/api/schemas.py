"""Wire schemas for the upload endpoint: one POST carrying an action name and its args."""
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from assetgate.services.types import PruneResult


def _config_forbid(**kwargs):
    return ConfigDict(extra="forbid", **kwargs)


class HandlerAction(str, Enum):
    generate_presigned_post_policy = "generatePresignedPostPolicy"
    verify_asset = "verifyAsset"
    get_presigned_url = "getPresignedUrl"
    delete_asset = "deleteAsset"
    get_asset = "getAsset"


class UploadActionRequest(BaseModel):
    model_config = _config_forbid()
    action: HandlerAction
    # GrantRequest for generatePresignedPostPolicy; {id}/{path} or a list of them otherwise
    args: Any = None


class ErrorResponse(BaseModel):
    model_config = _config_forbid()
    error: str


class PruneResponse(BaseModel):
    model_config = _config_forbid()
    success: bool
    result: PruneResult

