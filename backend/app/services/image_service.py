"""
Image generator: renders the prompt for a car and scene and asks the Gemini
image model for a picture.
"""
import json
import logging
import time

from ..core.config import settings
from ..schemas.tools import ImageRequest, ImageResult
from .ai_client import ai_client
from .moderation_service import moderation_service
from .prompts import image_request_payload, render_image_prompt

logger = logging.getLogger(__name__)


class ImageService:

    async def generate(self, request: ImageRequest) -> ImageResult:
        spec, params = request.prompt_spec, request.image_params
        await moderation_service.ensure_allowed({"details": spec.car.details})

        prompt = render_image_prompt(spec)
        logger.info(f"Generated image prompt: {prompt[:100]}...")

        payload = image_request_payload(prompt, params.width, params.height, params.seed)
        image = await ai_client.gemini_image(json.dumps(payload), model=settings.image_model)

        return ImageResult(image=image, prompt=prompt, timestamp=int(time.time() * 1000))


image_service = ImageService()
