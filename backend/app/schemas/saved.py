"""
Schemas for user-saved artifacts: cars, performance results, build plans
and generated images.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import Field

from .base import CamelModel
from .quota import QuotaOverview


# ============================================================================
# Saved Cars
# ============================================================================

class SavedCarCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=80)
    make: str = Field(..., min_length=1, max_length=60)
    model: str = Field(..., min_length=1, max_length=60)
    year: str = Field(..., min_length=2, max_length=4)
    trim: Optional[str] = Field(None, max_length=80)
    image_url: Optional[str] = None
    performance_data: Optional[Dict[str, Any]] = None
    build_plan_data: Optional[Dict[str, Any]] = None
    set_as_active: bool = False


class SavedCarUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=80)
    make: Optional[str] = Field(None, min_length=1, max_length=60)
    model: Optional[str] = Field(None, min_length=1, max_length=60)
    year: Optional[str] = Field(None, min_length=2, max_length=4)
    trim: Optional[str] = Field(None, max_length=80)
    image_url: Optional[str] = None
    performance_data: Optional[Dict[str, Any]] = None
    build_plan_data: Optional[Dict[str, Any]] = None
    set_as_active: Optional[bool] = None


class SavedCar(CamelModel):
    id: str
    name: str
    make: str
    model: str
    year: str
    trim: Optional[str] = None
    image_url: Optional[str] = None
    performance_data: Optional[Dict[str, Any]] = None
    build_plan_data: Optional[Dict[str, Any]] = None
    is_active: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ============================================================================
# Saved Performance (one per user)
# ============================================================================

class SavedPerformanceUpsert(CamelModel):
    car_input: Dict[str, Any]
    results: Dict[str, Any]


class SavedPerformance(CamelModel):
    id: str
    car_input: Dict[str, Any]
    results: Dict[str, Any]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SavedPerformanceResponse(CamelModel):
    performance: Optional[SavedPerformance] = None


# ============================================================================
# Saved Build Plans
# ============================================================================

class SavedBuildPlanCreate(CamelModel):
    vehicle_spec: Dict[str, Any]
    plan: Dict[str, Any]


class SavedBuildPlan(CamelModel):
    id: str
    vehicle_spec: Dict[str, Any]
    plan: Dict[str, Any]
    created_at: Optional[datetime] = None


# ============================================================================
# Saved Images
# ============================================================================

class SavedImageCreate(CamelModel):
    image_url: str = Field(..., min_length=1)
    car_spec: Dict[str, Any]
    prompt: str = Field(..., min_length=1)


class SavedImage(CamelModel):
    id: str
    image_url: str
    car_spec: Dict[str, Any]
    prompt: str
    created_at: Optional[datetime] = None


# ============================================================================
# Dashboard
# ============================================================================

class DashboardResponse(CamelModel):
    quota: QuotaOverview
    cars: List[SavedCar]
    active_car: Optional[SavedCar] = None
    performance: Optional[SavedPerformance] = None
    build_plans: List[SavedBuildPlan]
    images: List[SavedImage]
