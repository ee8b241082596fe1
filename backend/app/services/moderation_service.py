"""
Free-text moderation through the OpenAI moderation endpoint.

Moderation fails open: if the provider is unavailable or not configured the
text is allowed and the failure is logged.
"""
import logging
from typing import Any, Dict, List, Optional

from ..core.config import settings
from ..core.errors import TunedUpError, ValidationError
from .ai_client import ai_client

logger = logging.getLogger(__name__)

GENERIC_MESSAGE = "This content violates our community guidelines. Please revise and try again."

# First matching category family decides the message
CATEGORY_MESSAGES = [
    ("hate", "This content contains hate speech or discriminatory language, which violates our community guidelines."),
    ("harassment", "This content contains harassing or threatening language, which is not allowed."),
    ("self_harm", (
        "This content discusses self-harm, which violates our community guidelines. "
        "If you need support, please reach out to a crisis helpline."
    )),
    ("sexual", "This content contains inappropriate sexual content, which is not allowed."),
    ("violence", "This content contains violent or graphic content, which violates our community guidelines."),
]


def flagged_categories(categories: Any) -> List[str]:
    """Names of the flagged categories, normalised to snake_case."""
    if categories is None:
        return []
    if hasattr(categories, "model_dump"):
        categories = categories.model_dump()
    return [
        str(name).replace("-", "_").replace("/", "_")
        for name, flagged in dict(categories).items()
        if flagged
    ]


def moderation_message(categories: List[str]) -> str:
    if not categories:
        return "This content violates our community guidelines."
    for family, message in CATEGORY_MESSAGES:
        if any(family in category for category in categories):
            return message
    return GENERIC_MESSAGE


class ModerationService:

    async def check_text(self, text: Optional[str]) -> Optional[str]:
        """Return a rejection message if ``text`` is flagged, else None."""
        if not settings.moderation_enabled or not text or not text.strip():
            return None

        try:
            result = await ai_client.moderate(text)
        except TunedUpError as e:
            logger.warning(f"Moderation unavailable, allowing content: {e.message}")
            return None

        if not result.flagged:
            return None

        categories = flagged_categories(result.categories)
        logger.info(f"Moderation flagged content ({', '.join(categories) or 'uncategorised'}): {text[:50]!r}")
        return moderation_message(categories)

    async def ensure_allowed(self, fields: Dict[str, Optional[str]]) -> None:
        """
        Moderate each non-empty field in order.

        Raises:
            ValidationError: with a category-specific message for the first flagged field
        """
        for name, text in fields.items():
            message = await self.check_text(text)
            if message:
                logger.info(f"Rejected request: field '{name}' failed moderation")
                raise ValidationError(message)


# Global service instance
moderation_service = ModerationService()
