"""
Pydantic schemas for the AI tools: performance estimator, build planner
and image generator.
"""
from enum import Enum
from typing import List, Literal, Optional
from pydantic import Field, field_validator

from .base import CamelModel


NOT_SPECIFIED = "Not Specified"


def _strip(value):
    return value.strip() if isinstance(value, str) else value


# ============================================================================
# Performance Estimator
# ============================================================================

class CarInput(CamelModel):
    """Vehicle configuration to estimate performance for."""
    make: str = Field(..., min_length=1, max_length=60)
    model: str = Field(..., min_length=1, max_length=60)
    year: str = Field(..., min_length=2, max_length=4)
    trim: str = Field(default="", max_length=80)
    drivetrain: str = Field(default=NOT_SPECIFIED, max_length=40)
    transmission: str = Field(default=NOT_SPECIFIED, max_length=40)
    modifications: str = Field(default="", max_length=2000)
    tire_type: str = Field(default=NOT_SPECIFIED, max_length=60)
    fuel_type: str = Field(default=NOT_SPECIFIED, max_length=40)
    launch_technique: str = Field(default=NOT_SPECIFIED, max_length=60)

    @field_validator("*", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)


class PerformanceFigures(CamelModel):
    horsepower: float
    whp: float
    zero_to_sixty: float


class PerformanceResult(CamelModel):
    stock_performance: PerformanceFigures
    estimated_performance: PerformanceFigures
    explanation: str
    confidence: Literal["Low", "Medium", "High"]
    sources: List[str] = Field(default_factory=list)


# ============================================================================
# Build Planner
# ============================================================================

class VehicleSpec(CamelModel):
    year: str = Field(..., min_length=2, max_length=4)
    make: str = Field(..., min_length=1, max_length=60)
    model: str = Field(..., min_length=1, max_length=60)
    trim: str = Field(default="", max_length=80)
    question: str = Field(default="", max_length=2000, description="Goals, budget and experience level")

    @field_validator("*", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)


class BuildPlanRequest(CamelModel):
    vehicle_spec: VehicleSpec


class PartRecommendation(CamelModel):
    name: str
    part_price: float = 0
    diy_shop_cost: float = 0
    professional_shop_cost: float = 0
    description: str = ""


class BuildPlanResult(CamelModel):
    stage: str
    total_parts_cost: float
    total_diy_cost: float = Field(..., alias="totalDIYCost")
    total_professional_cost: float
    recommendations: List[PartRecommendation]
    explanation: str
    timeframe: str = ""
    difficulty: Literal["Beginner", "Intermediate", "Advanced", "Professional"] = "Intermediate"
    warnings: List[str] = Field(default_factory=list)


# ============================================================================
# Image Generator
# ============================================================================

class CarPosition(str, Enum):
    FRONT = "front"
    QUARTER = "quarter"
    THREE_QUARTER = "three-quarter"
    BACK = "back"


class LocationKey(str, Enum):
    SCOTTISH_HILLS = "scottish_hills"
    US_CANYONS = "us_canyons"
    ITALIAN_COBBLESTONE = "italian_cobblestone"
    JAPANESE_NIGHTLIFE = "japanese_nightlife"
    GERMAN_CITY = "german_city"


class TimeKey(str, Enum):
    DUSK = "dusk"
    DAWN = "dawn"
    MIDNIGHT = "midnight"
    MIDDAY = "midday"


class PaletteKey(str, Enum):
    COOL_TEAL = "cool_teal"
    WARM_SUNSET = "warm_sunset"
    MONOCHROME_SLATE = "monochrome_slate"
    NEO_TOKYO = "neo_tokyo"
    VINTAGE_FILM = "vintage_film"


class CarSpec(CamelModel):
    year: str = Field(..., min_length=2, max_length=4)
    make: str = Field(..., min_length=1, max_length=60)
    model: str = Field(..., min_length=1, max_length=60)
    color: str = Field(..., min_length=1, max_length=40)
    wheels_color: str = Field(default="black", max_length=40)
    add_model: bool = False
    de_badged: bool = False
    chrome_delete: bool = False
    position: Optional[CarPosition] = None
    details: str = Field(default="", max_length=500)


class SceneSpec(CamelModel):
    location_key: Optional[LocationKey] = None
    time_key: Optional[TimeKey] = None
    palette_key: Optional[PaletteKey] = None


class CameraSpec(CamelModel):
    angle: str = Field(default="three-quarter front", max_length=60)
    focal_length: int = Field(default=85, ge=10, le=400)
    motion: str = Field(default="static", max_length=60)


class StyleSpec(CamelModel):
    realism: int = Field(default=85, ge=0, le=100)
    grain: int = Field(default=10, ge=0, le=100)


class PromptSpec(CamelModel):
    car: CarSpec
    scene: SceneSpec
    camera: Optional[CameraSpec] = None
    style: Optional[StyleSpec] = None


class ImageParams(CamelModel):
    width: int = Field(..., ge=256, le=2048)
    height: int = Field(..., ge=256, le=2048)
    seed: Optional[int] = None


class ImageRequest(CamelModel):
    prompt_spec: PromptSpec
    image_params: ImageParams


class ImageResult(CamelModel):
    image: str = Field(..., description="Base64 encoded PNG")
    prompt: str
    timestamp: int = Field(..., description="Milliseconds since epoch")
