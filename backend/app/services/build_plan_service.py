"""
Build planner: parts, labor costs and strategy for a requested build.
"""
import logging
from typing import Any, Dict, List

from pydantic import ValidationError as PydanticValidationError

from ..core.config import settings
from ..core.errors import UpstreamError
from ..schemas.tools import BuildPlanResult, VehicleSpec
from .ai_client import ai_client
from .moderation_service import moderation_service
from .prompts import build_plan_prompt

logger = logging.getLogger(__name__)

DIFFICULTIES = ("Beginner", "Intermediate", "Advanced", "Professional")


def _amount(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def normalize_build_plan(data: Dict[str, Any]) -> BuildPlanResult:
    """
    Validate the model's plan and fill in cost totals it left out.

    Totals: parts = sum(partPrice), DIY = sum(partPrice + diyShopCost),
    professional = sum(partPrice + professionalShopCost).
    """
    recommendations: List[Dict[str, Any]] = data.get("recommendations") or []
    if not recommendations or not data.get("explanation") or not data.get("stage"):
        logger.error("Build plan response missing stage, recommendations or explanation")
        raise UpstreamError("AI response missing required fields.")

    data = dict(data)
    if data.get("difficulty") not in DIFFICULTIES:
        data["difficulty"] = "Intermediate"
    data["warnings"] = [str(w) for w in data.get("warnings") or []]
    if not data.get("totalPartsCost"):
        data["totalPartsCost"] = sum(_amount(r.get("partPrice")) for r in recommendations)
    if not data.get("totalDIYCost"):
        data["totalDIYCost"] = sum(
            _amount(r.get("partPrice")) + _amount(r.get("diyShopCost")) for r in recommendations
        )
    if not data.get("totalProfessionalCost"):
        data["totalProfessionalCost"] = sum(
            _amount(r.get("partPrice")) + _amount(r.get("professionalShopCost")) for r in recommendations
        )

    try:
        return BuildPlanResult.model_validate(data)
    except PydanticValidationError as e:
        logger.error(f"Build plan response failed validation: {e}")
        raise UpstreamError("AI response had an unexpected format.")


class BuildPlanService:

    async def generate(self, spec: VehicleSpec) -> BuildPlanResult:
        await moderation_service.ensure_allowed({"question": spec.question})

        logger.info(f"Processing build plan request for: {spec.year} {spec.make} {spec.model}")
        data = await ai_client.gemini_json(build_plan_prompt(spec), model=settings.build_plan_model)
        return normalize_build_plan(data)


build_plan_service = BuildPlanService()
