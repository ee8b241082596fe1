"""
Promotion code schemas.
"""
from typing import Optional
from pydantic import Field

from .base import CamelModel


class PromotionAvailability(CamelModel):
    available: bool
    reason: Optional[str] = None
    remaining: Optional[int] = None
    plan_code: Optional[str] = None


class RedeemPromotionRequest(CamelModel):
    code: str = Field(..., min_length=1, max_length=40)


class RedeemPromotionResponse(CamelModel):
    success: bool = True
    message: str
    plan_code: str
