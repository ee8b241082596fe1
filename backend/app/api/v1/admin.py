"""
Administration API routes. Every route requires an ADMIN caller.
"""
import logging
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, Query

from ...core.dependencies import RequestContext, require_admin
from ...core.errors import NotFoundError
from ...schemas.admin import SetPlanRequest, SetPlanResponse
from ...schemas.auth import UserResponse
from ...services.entitlement_service import add_months, entitlement_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/users", response_model=List[UserResponse])
async def list_users(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    context: RequestContext = Depends(require_admin),
):
    users = entitlement_service.list_users(limit=limit, offset=offset)
    return [entitlement_service.to_user_response(user) for user in users]


@router.get("/users/{email}", response_model=UserResponse)
async def get_user(email: str, context: RequestContext = Depends(require_admin)):
    user = entitlement_service.get_user(email.lower())
    if user is None:
        raise NotFoundError("User not found")
    return entitlement_service.to_user_response(user)


@router.post("/users/{email}/plan", response_model=SetPlanResponse)
async def set_user_plan(
    email: str,
    body: SetPlanRequest,
    context: RequestContext = Depends(require_admin),
):
    """Set a user's plan; it renews one year from now."""
    renews_at = add_months(datetime.now(timezone.utc), 12)
    user = entitlement_service.set_plan(email.lower(), body.plan, renews_at=renews_at)
    logger.info(f"{context.email} set plan for {email} to {body.plan.value}")
    return SetPlanResponse(
        message=f"Plan updated to {body.plan.value}",
        user=entitlement_service.to_user_response(user),
    )
