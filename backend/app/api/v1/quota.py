"""
Quota API routes.
"""
from fastapi import APIRouter, Depends

from ...core.dependencies import RequestContext, get_request_context
from ...schemas.quota import QuotaCheckRequest, QuotaDecision, QuotaOverview
from ...services.quota_service import quota_service


router = APIRouter(prefix="/quota", tags=["Quota"])


@router.get("", response_model=QuotaOverview)
async def get_quota(context: RequestContext = Depends(get_request_context)):
    """
    Usage, limits and remaining allowance per tool for the caller.

    Anonymous callers see their per-fingerprint allowance.
    """
    return await quota_service.overview(context)


@router.post("/check", response_model=QuotaDecision)
async def check_quota(
    body: QuotaCheckRequest,
    context: RequestContext = Depends(get_request_context),
):
    """Evaluate the quota gate for one tool without consuming anything."""
    return await quota_service.check(context, body.tool_type)
