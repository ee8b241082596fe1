"""
Metered AI tools.

Each endpoint reserves one unit of the caller's quota for its tool, runs the
AI call, and releases the unit if anything fails, so only successful results
count against the plan.
"""
from fastapi import APIRouter, Depends, Request

from ...core.config import settings
from ...core.dependencies import RequestContext, get_request_context
from ...core.rate_limit import limiter
from ...core.tier_limits import ToolType
from ...schemas.tools import (
    BuildPlanRequest,
    BuildPlanResult,
    CarInput,
    ImageRequest,
    ImageResult,
    PerformanceResult,
)
from ...services.build_plan_service import build_plan_service
from ...services.image_service import image_service
from ...services.performance_service import performance_service
from ...services.quota_service import quota_service

router = APIRouter(prefix="/tools", tags=["AI Tools"])


@router.post("/performance", response_model=PerformanceResult)
@limiter.limit(settings.tool_rate_limit)
async def estimate_performance(
    request: Request,
    car: CarInput,
    context: RequestContext = Depends(get_request_context),
):
    """Stock and modified performance figures for a vehicle."""
    async with quota_service.metered(context, ToolType.PERFORMANCE):
        return await performance_service.estimate(car)


@router.post("/build-plan", response_model=BuildPlanResult)
@limiter.limit(settings.tool_rate_limit)
async def create_build_plan(
    request: Request,
    body: BuildPlanRequest,
    context: RequestContext = Depends(get_request_context),
):
    """Parts, costs and strategy for the requested build."""
    async with quota_service.metered(context, ToolType.BUILD):
        return await build_plan_service.generate(body.vehicle_spec)


@router.post("/generate-image", response_model=ImageResult)
@limiter.limit(settings.tool_rate_limit)
async def generate_image(
    request: Request,
    body: ImageRequest,
    context: RequestContext = Depends(get_request_context),
):
    """Render a prompt from the car and scene and generate the image."""
    async with quota_service.metered(context, ToolType.IMAGE):
        return await image_service.generate(body)
