"""
Admin schemas.
"""
from .base import CamelModel
from .auth import UserResponse
from ..core.tier_limits import PlanCode


class SetPlanRequest(CamelModel):
    plan: PlanCode


class SetPlanResponse(CamelModel):
    message: str
    user: UserResponse
