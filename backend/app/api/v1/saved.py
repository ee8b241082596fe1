"""
Saved cars, performance, build plans and images.

Every route is scoped to the signed-in caller.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from ...core.dependencies import RequestContext, require_user
from ...schemas.auth import MessageResponse
from ...schemas.saved import (
    SavedBuildPlan,
    SavedBuildPlanCreate,
    SavedCar,
    SavedCarCreate,
    SavedCarUpdate,
    SavedImage,
    SavedImageCreate,
    SavedPerformanceResponse,
    SavedPerformanceUpsert,
)
from ...services.saved_items_service import saved_items_service


router = APIRouter(prefix="/saved", tags=["Saved"])


# ================================================================
# Cars
# ================================================================

@router.get("/cars", response_model=List[SavedCar])
async def list_cars(context: RequestContext = Depends(require_user)):
    return saved_items_service.list_cars(context.email)


@router.post("/cars", response_model=SavedCar, status_code=status.HTTP_201_CREATED)
async def create_car(body: SavedCarCreate, context: RequestContext = Depends(require_user)):
    """Save a car; ``setAsActive`` makes it the only active car."""
    return saved_items_service.create_car(context.email, body)


@router.put("/cars/{car_id}", response_model=SavedCar)
async def update_car(
    car_id: UUID,
    body: SavedCarUpdate,
    context: RequestContext = Depends(require_user),
):
    return saved_items_service.update_car(context.email, str(car_id), body)


@router.delete("/cars/{car_id}", response_model=MessageResponse)
async def delete_car(car_id: UUID, context: RequestContext = Depends(require_user)):
    saved_items_service.delete_car(context.email, str(car_id))
    return MessageResponse(message="Car deleted")


# ================================================================
# Performance (one per user)
# ================================================================

@router.get("/performance", response_model=SavedPerformanceResponse)
async def get_performance(context: RequestContext = Depends(require_user)):
    return SavedPerformanceResponse(performance=saved_items_service.get_performance(context.email))


@router.put("/performance", response_model=SavedPerformanceResponse)
async def save_performance(
    body: SavedPerformanceUpsert,
    context: RequestContext = Depends(require_user),
):
    """Replace the caller's saved calculation."""
    return SavedPerformanceResponse(performance=saved_items_service.save_performance(context.email, body))


@router.delete("/performance", response_model=MessageResponse)
async def delete_performance(context: RequestContext = Depends(require_user)):
    saved_items_service.delete_performance(context.email)
    return MessageResponse(message="Saved performance deleted")


# ================================================================
# Build plans
# ================================================================

@router.get("/build-plans", response_model=List[SavedBuildPlan])
async def list_build_plans(context: RequestContext = Depends(require_user)):
    return saved_items_service.list_build_plans(context.email)


@router.post("/build-plans", response_model=SavedBuildPlan, status_code=status.HTTP_201_CREATED)
async def create_build_plan(
    body: SavedBuildPlanCreate,
    context: RequestContext = Depends(require_user),
):
    return saved_items_service.create_build_plan(context.email, body)


@router.delete("/build-plans/{plan_id}", response_model=MessageResponse)
async def delete_build_plan(plan_id: UUID, context: RequestContext = Depends(require_user)):
    saved_items_service.delete_build_plan(context.email, str(plan_id))
    return MessageResponse(message="Build plan deleted")


# ================================================================
# Images
# ================================================================

@router.get("/images", response_model=List[SavedImage])
async def list_images(context: RequestContext = Depends(require_user)):
    return saved_items_service.list_images(context.email)


@router.post("/images", response_model=SavedImage, status_code=status.HTTP_201_CREATED)
async def create_image(body: SavedImageCreate, context: RequestContext = Depends(require_user)):
    """Save a generated image. Each user keeps at most three."""
    return saved_items_service.create_image(context.email, body)


@router.delete("/images/{image_id}", response_model=MessageResponse)
async def delete_image(image_id: UUID, context: RequestContext = Depends(require_user)):
    saved_items_service.delete_image(context.email, str(image_id))
    return MessageResponse(message="Image deleted")
