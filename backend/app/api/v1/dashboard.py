"""
Dashboard API route: everything the signed-in home screen shows, in one call.
"""
from fastapi import APIRouter, Depends

from ...core.dependencies import RequestContext, require_user
from ...schemas.saved import DashboardResponse
from ...services.quota_service import quota_service
from ...services.saved_items_service import saved_items_service


router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("", response_model=DashboardResponse)
async def get_dashboard(context: RequestContext = Depends(require_user)):
    cars = saved_items_service.list_cars(context.email)
    active_car = next((car for car in cars if car.is_active), None)

    return DashboardResponse(
        quota=await quota_service.overview(context),
        cars=cars,
        active_car=active_car,
        performance=saved_items_service.get_performance(context.email),
        build_plans=saved_items_service.list_build_plans(context.email),
        images=saved_items_service.list_images(context.email),
    )
