"""
Thin wrappers around the generative AI providers.

OpenAI serves performance estimates and moderation; Gemini serves build plans
and images. Every outbound call is bounded by ``ai_request_timeout_seconds``
and retried on transient provider failures. Provider exceptions are mapped
onto ``UpstreamError`` / ``UpstreamTimeoutError`` so handlers only see domain
errors.
"""
import asyncio
import base64
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import openai
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from ..core.config import settings
from ..core.errors import ConfigurationError, UpstreamError, UpstreamTimeoutError

logger = logging.getLogger(__name__)

MODERATION_MODEL = "omni-moderation-latest"


def _is_transient(exc: BaseException) -> bool:
    """Provider failures worth another attempt. Timeouts are not retried."""
    if isinstance(exc, openai.APITimeoutError):
        return False
    if isinstance(exc, (openai.RateLimitError, openai.InternalServerError, openai.APIConnectionError)):
        return True
    if isinstance(exc, genai_errors.ServerError):
        return True
    if isinstance(exc, httpx.TimeoutException):
        return False
    return isinstance(exc, httpx.TransportError)


def _is_timeout(exc: BaseException) -> bool:
    return isinstance(exc, (asyncio.TimeoutError, openai.APITimeoutError, httpx.TimeoutException))


def parse_json_payload(content: Optional[str], provider: str) -> Dict[str, Any]:
    """Decode a model's JSON answer, tolerating a fenced code block around it."""
    if not content or not content.strip():
        raise UpstreamError(f"Received an empty response from {provider}.")

    text = content.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"{provider} returned invalid JSON: {e}")
        raise UpstreamError(f"Failed to parse {provider} response. The model returned an invalid format.")

    if not isinstance(data, dict):
        raise UpstreamError(f"{provider} response was not a JSON object.")
    return data


class AIClient:
    """Lazily-constructed OpenAI and Gemini clients with shared error policy."""

    def __init__(self):
        self._openai: Optional[openai.AsyncOpenAI] = None
        self._gemini: Optional[genai.Client] = None

    @property
    def openai(self) -> openai.AsyncOpenAI:
        if not settings.openai_api_key:
            raise ConfigurationError("Server configuration error: OpenAI API key not configured")
        if self._openai is None:
            self._openai = openai.AsyncOpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.ai_request_timeout_seconds,
                max_retries=0,
            )
        return self._openai

    @property
    def gemini(self) -> genai.Client:
        if not settings.gemini_api_key:
            raise ConfigurationError("Server configuration error: Gemini API key not configured")
        if self._gemini is None:
            self._gemini = genai.Client(
                api_key=settings.gemini_api_key,
                http_options=genai_types.HttpOptions(timeout=int(settings.ai_request_timeout_seconds * 1000)),
            )
        return self._gemini

    async def _call(self, label: str, call: Callable[[], Awaitable[Any]]) -> Any:
        """Run ``call`` with timeout, retries and error mapping."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max(settings.ai_max_attempts, 1)),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
                retry=retry_if_exception(_is_transient),
                reraise=True,
            ):
                with attempt:
                    return await asyncio.wait_for(call(), timeout=settings.ai_request_timeout_seconds)
        except Exception as e:
            if _is_timeout(e):
                logger.warning(f"{label} timed out after {settings.ai_request_timeout_seconds}s")
                raise UpstreamTimeoutError()
            if isinstance(e, (openai.APIError, genai_errors.APIError, httpx.HTTPError)):
                logger.error(f"{label} failed: {type(e).__name__}: {e}")
                raise UpstreamError(f"{label} failed. Please try again.")
            raise

    # ------------------------------------------------------------------
    # OpenAI
    # ------------------------------------------------------------------

    @staticmethod
    def _chat_options(model: str, max_tokens: int, temperature: float) -> Dict[str, Any]:
        # Reasoning models reject temperature and take max_completion_tokens
        if model.startswith("o"):
            return {"max_completion_tokens": max_tokens}
        return {"max_tokens": max_tokens, "temperature": temperature}

    async def chat_json(
        self,
        system_prompt: str,
        user_prompt: str,
        response_format: Dict[str, Any],
        models: List[str],
        max_tokens: int = 3000,
        temperature: float = 0.3,
    ) -> Dict[str, Any]:
        """
        Structured chat completion, trying ``models`` in order.

        A model that errors (other than by timing out) hands over to the next
        one; the last failure is raised.
        """
        client = self.openai
        last_error: Optional[UpstreamError] = None

        for model in models:
            async def create(model=model):
                return await client.chat.completions.create(
                    model=model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    response_format=response_format,
                    **self._chat_options(model, max_tokens, temperature),
                )

            try:
                response = await self._call(f"OpenAI {model}", create)
            except UpstreamTimeoutError:
                raise
            except UpstreamError as e:
                logger.info(f"Model {model} unavailable, trying next fallback")
                last_error = e
                continue

            choice = response.choices[0] if response.choices else None
            content = choice.message.content if choice else None
            return parse_json_payload(content, "OpenAI")

        raise last_error or UpstreamError("No model available for this request")

    async def moderate(self, text: str) -> Any:
        """Return the first moderation result for ``text``."""
        client = self.openai
        response = await self._call(
            "OpenAI moderation",
            lambda: client.moderations.create(model=MODERATION_MODEL, input=text),
        )
        return response.results[0]

    # ------------------------------------------------------------------
    # Gemini
    # ------------------------------------------------------------------

    async def gemini_json(
        self,
        prompt: str,
        model: str,
        temperature: float = 0.3,
        max_output_tokens: int = 3000,
    ) -> Dict[str, Any]:
        client = self.gemini
        config = genai_types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            response_mime_type="application/json",
        )
        response = await self._call(
            f"Gemini {model}",
            lambda: client.aio.models.generate_content(model=model, contents=prompt, config=config),
        )
        return parse_json_payload(getattr(response, "text", None), "Gemini")

    async def gemini_image(self, contents: str, model: str) -> str:
        """Generate an image and return it base64-encoded."""
        client = self.gemini
        response = await self._call(
            f"Gemini {model}",
            lambda: client.aio.models.generate_content(model=model, contents=contents),
        )
        return extract_image_base64(response)


def extract_image_base64(response: Any) -> str:
    """Pull the first inline image out of a generate_content response."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates or candidates[0].content is None:
        raise UpstreamError("Image model returned no candidates.")

    for part in candidates[0].content.parts or []:
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            data = inline.data
            if isinstance(data, (bytes, bytearray)):
                return base64.b64encode(data).decode("ascii")
            return str(data)

    raise UpstreamError("No image data found in the image model response.")


# Global client instance
ai_client = AIClient()
