"""
Promotion API routes.
"""
from fastapi import APIRouter, Depends

from ...core.dependencies import RequestContext, require_user
from ...schemas.promotions import (
    PromotionAvailability,
    RedeemPromotionRequest,
    RedeemPromotionResponse,
)
from ...services.promotion_service import promotion_service


router = APIRouter(prefix="/promotions", tags=["Promotions"])


@router.post("/redeem", response_model=RedeemPromotionResponse)
async def redeem_promotion(
    body: RedeemPromotionRequest,
    context: RequestContext = Depends(require_user),
):
    """Upgrade the caller's plan for a year. A user may redeem a promotion once."""
    return promotion_service.redeem(context.email, body.code)


@router.get("/{code}", response_model=PromotionAvailability)
async def check_promotion(code: str):
    """Whether a promotion code can still be redeemed, and how many uses remain."""
    return promotion_service.check(code)
