"""
Performance estimator: stock and modified horsepower, wheel horsepower and
0-60 times for a described vehicle.
"""
import logging

from pydantic import ValidationError as PydanticValidationError

from ..core.config import settings
from ..core.errors import UpstreamError
from ..schemas.tools import CarInput, PerformanceResult
from .ai_client import ai_client
from .moderation_service import moderation_service
from .prompts import PERFORMANCE_RESPONSE_FORMAT, build_performance_prompts

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("stockPerformance", "estimatedPerformance", "explanation", "confidence")


def normalize_performance(data: dict) -> PerformanceResult:
    """Validate the model's JSON and shape it into a PerformanceResult."""
    missing = [field for field in REQUIRED_FIELDS if not data.get(field)]
    if missing:
        logger.error(f"Performance response missing fields: {missing}")
        raise UpstreamError("AI response missing required fields.")

    # The chat model does not cite sources
    data = {**data, "sources": []}
    try:
        return PerformanceResult.model_validate(data)
    except PydanticValidationError as e:
        logger.error(f"Performance response failed validation: {e}")
        raise UpstreamError("AI response had an unexpected format.")


class PerformanceService:

    async def estimate(self, car: CarInput) -> PerformanceResult:
        await moderation_service.ensure_allowed({"modifications": car.modifications})

        logger.info(f"Processing performance request for: {car.year} {car.make} {car.model}")
        system_prompt, user_prompt = build_performance_prompts(car)
        data = await ai_client.chat_json(
            system_prompt,
            user_prompt,
            PERFORMANCE_RESPONSE_FORMAT,
            models=[settings.performance_model, settings.performance_fallback_model],
        )
        result = normalize_performance(data)
        logger.info("Performance calculation completed")
        return result


performance_service = PerformanceService()
