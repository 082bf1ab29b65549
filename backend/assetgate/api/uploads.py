"""Upload endpoint: single POST dispatching on `action`, plus the cron-triggered prune."""
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import ValidationError

from assetgate.api.schemas import ErrorResponse, HandlerAction, PruneResponse, UploadActionRequest
from assetgate.core.deps import get_orchestrator, get_request_context, require_cron_key
from assetgate.core.logging_redaction import redact_for_log
from assetgate.services.orchestrator import AssetOrchestrator
from assetgate.services.types import GrantRequest, RequestContext

router = APIRouter(prefix="/upload", tags=["upload"])
logger = logging.getLogger(__name__)


def _validation_error(err: ValidationError) -> HTTPException:
    detail = [
        {"path": ".".join(str(x) for x in e["loc"]), "message": e.get("msg", "")}
        for e in err.errors()
    ]
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


_ERROR_RESPONSES = {code: {"model": ErrorResponse} for code in (400, 404, 409, 500)}


@router.post("", responses=_ERROR_RESPONSES)
async def handle_action(
    body: UploadActionRequest,
    orchestrator: AssetOrchestrator = Depends(get_orchestrator),
    context: RequestContext = Depends(get_request_context),
) -> Any:
    logger.debug("upload action %s args=%s", body.action.value, redact_for_log(body.args))
    try:
        if body.action is HandlerAction.generate_presigned_post_policy:
            request = GrantRequest.model_validate(body.args or {})
            return await orchestrator.issue_upload_grant(request, context)
        if body.args is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="args is required")
        if body.action is HandlerAction.verify_asset:
            return await orchestrator.verify_asset(body.args)
        if body.action is HandlerAction.get_presigned_url:
            return await orchestrator.resolve_asset_access(body.args, context)
        if body.action is HandlerAction.delete_asset:
            return await orchestrator.delete_asset(body.args)
        return await orchestrator.get_asset(body.args)
    except ValidationError as e:
        raise _validation_error(e)


@router.get("/prune", response_model=PruneResponse, dependencies=[Depends(require_cron_key)])
async def prune(orchestrator: AssetOrchestrator = Depends(get_orchestrator)):
    """Reconcile bucket against records. Meant for a periodic (e.g. hourly) cron hit."""
    result = await orchestrator.prune_assets()
    return PruneResponse(success=True, result=result)
