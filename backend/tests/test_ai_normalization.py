"""
Tests for AI response handling: JSON parsing, result normalization, model
fallback, timeouts and moderation.
"""
import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from app.core.config import settings
from app.core.errors import ConfigurationError, UpstreamError, UpstreamTimeoutError, ValidationError
from app.services.ai_client import AIClient, ai_client, extract_image_base64, parse_json_payload
from app.services.build_plan_service import normalize_build_plan
from app.services.moderation_service import moderation_message, moderation_service
from app.services.performance_service import normalize_performance


PERFORMANCE_JSON = {
    "stockPerformance": {"horsepower": 268, "whp": 228, "zeroToSixty": 5.4},
    "estimatedPerformance": {"horsepower": 330, "whp": 281, "zeroToSixty": 4.8},
    "explanation": "Stock 2.0L turbo plus tune and downpipe.",
    "confidence": "Medium",
}


def chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def openai_server_error():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return openai.InternalServerError(
        "server exploded", response=httpx.Response(500, request=request), body=None,
    )


@pytest.fixture
def client_with_openai(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", "sk-test")
    monkeypatch.setattr(settings, "ai_max_attempts", 1)
    client = AIClient()
    client._openai = MagicMock()
    client._openai.chat.completions.create = AsyncMock()
    return client


# ================================================================
# JSON parsing
# ================================================================

def test_parse_json_payload_plain_and_fenced():
    assert parse_json_payload('{"a": 1}', "OpenAI") == {"a": 1}
    assert parse_json_payload('```json\n{"a": 1}\n```', "Gemini") == {"a": 1}


@pytest.mark.parametrize("content", [None, "", "   ", "not json", "[1, 2]"])
def test_parse_json_payload_rejects_bad_content(content):
    with pytest.raises(UpstreamError):
        parse_json_payload(content, "OpenAI")


# ================================================================
# Normalization
# ================================================================

def test_normalize_performance_adds_empty_sources():
    result = normalize_performance(dict(PERFORMANCE_JSON))
    assert result.sources == []
    assert result.estimated_performance.zero_to_sixty == 4.8
    assert result.model_dump(by_alias=True)["stockPerformance"]["zeroToSixty"] == 5.4


def test_normalize_performance_missing_fields():
    data = dict(PERFORMANCE_JSON)
    del data["estimatedPerformance"]
    with pytest.raises(UpstreamError, match="missing required fields"):
        normalize_performance(data)


def test_normalize_performance_bad_confidence():
    with pytest.raises(UpstreamError):
        normalize_performance({**PERFORMANCE_JSON, "confidence": "Certain"})


def test_normalize_build_plan_computes_totals():
    plan = normalize_build_plan({
        "stage": "Stage 1",
        "recommendations": [
            {"name": "Intake", "partPrice": 300, "diyShopCost": 100, "professionalShopCost": 200},
            {"name": "Tune", "partPrice": 600, "diyShopCost": 0, "professionalShopCost": 150},
        ],
        "explanation": "Breathe, then tune.",
        "difficulty": "Expert",
        "warnings": ["Check fuel quality", 42],
    })

    assert plan.total_parts_cost == 900
    assert plan.total_diy_cost == 1000
    assert plan.total_professional_cost == 1250
    assert plan.difficulty == "Intermediate"
    assert plan.warnings == ["Check fuel quality", "42"]
    assert plan.model_dump(by_alias=True)["totalDIYCost"] == 1000


def test_normalize_build_plan_keeps_model_totals():
    plan = normalize_build_plan({
        "stage": "Track Prep",
        "totalPartsCost": 5000,
        "totalDIYCost": 6000,
        "totalProfessionalCost": 7000,
        "recommendations": [{"name": "Coilovers", "partPrice": 1}],
        "explanation": "Suspension first.",
        "difficulty": "Advanced",
    })
    assert (plan.total_parts_cost, plan.total_diy_cost, plan.total_professional_cost) == (5000, 6000, 7000)
    assert plan.difficulty == "Advanced"


@pytest.mark.parametrize("missing", ["stage", "recommendations", "explanation"])
def test_normalize_build_plan_requires_core_fields(missing):
    data = {
        "stage": "Stage 1",
        "recommendations": [{"name": "Intake"}],
        "explanation": "Because.",
    }
    del data[missing]
    with pytest.raises(UpstreamError):
        normalize_build_plan(data)


# ================================================================
# Client behaviour
# ================================================================

@pytest.mark.asyncio
async def test_chat_json_falls_back_to_next_model(client_with_openai):
    create = client_with_openai._openai.chat.completions.create
    create.side_effect = [openai_server_error(), chat_response('{"ok": true}')]

    data = await client_with_openai.chat_json("sys", "user", {}, models=["o3-mini", "gpt-4o"])

    assert data == {"ok": True}
    first, second = create.call_args_list
    assert first.kwargs["model"] == "o3-mini"
    assert "temperature" not in first.kwargs
    assert first.kwargs["max_completion_tokens"] == 3000
    assert second.kwargs["model"] == "gpt-4o"
    assert second.kwargs["temperature"] == 0.3


@pytest.mark.asyncio
async def test_chat_json_all_models_fail(client_with_openai):
    client_with_openai._openai.chat.completions.create.side_effect = [
        openai_server_error(), openai_server_error(),
    ]
    with pytest.raises(UpstreamError) as exc_info:
        await client_with_openai.chat_json("sys", "user", {}, models=["o3-mini", "gpt-4o"])
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_timeout_maps_to_504_without_fallback(client_with_openai, monkeypatch):
    monkeypatch.setattr(settings, "ai_request_timeout_seconds", 0.05)

    async def slow(**kwargs):
        await asyncio.sleep(1)

    create = client_with_openai._openai.chat.completions.create
    create.side_effect = slow

    with pytest.raises(UpstreamTimeoutError) as exc_info:
        await client_with_openai.chat_json("sys", "user", {}, models=["o3-mini", "gpt-4o"])

    assert exc_info.value.status_code == 504
    assert create.call_count == 1


@pytest.mark.asyncio
async def test_transient_errors_are_retried(client_with_openai, monkeypatch):
    monkeypatch.setattr(settings, "ai_max_attempts", 2)
    create = client_with_openai._openai.chat.completions.create
    create.side_effect = [openai_server_error(), chat_response('{"ok": 1}')]

    data = await client_with_openai.chat_json("sys", "user", {}, models=["gpt-4o"])
    assert data == {"ok": 1}
    assert create.call_count == 2


def test_missing_api_key_is_a_configuration_error(monkeypatch):
    monkeypatch.setattr(settings, "gemini_api_key", None)
    with pytest.raises(ConfigurationError):
        AIClient().gemini


def test_extract_image_base64():
    part = SimpleNamespace(inline_data=SimpleNamespace(data=b"\x89PNG"))
    response = SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])
    assert extract_image_base64(response) == "iVBORw=="

    empty = SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[]))])
    with pytest.raises(UpstreamError):
        extract_image_base64(empty)


# ================================================================
# Moderation
# ================================================================

def test_moderation_messages_by_category():
    assert "hate speech" in moderation_message(["hate_threatening"])
    assert "crisis helpline" in moderation_message(["self_harm_intent"])
    assert moderation_message(["illicit"]).startswith("This content violates our community guidelines")


@pytest.mark.asyncio
async def test_flagged_text_is_rejected(monkeypatch):
    monkeypatch.setattr(settings, "moderation_enabled", True)
    result = SimpleNamespace(flagged=True, categories={"violence": True, "hate": False})
    monkeypatch.setattr(ai_client, "moderate", AsyncMock(return_value=result))

    with pytest.raises(ValidationError, match="violent"):
        await moderation_service.ensure_allowed({"modifications": "something nasty"})


@pytest.mark.asyncio
async def test_moderation_fails_open(monkeypatch):
    monkeypatch.setattr(settings, "moderation_enabled", True)
    monkeypatch.setattr(
        ai_client,
        "moderate",
        AsyncMock(side_effect=UpstreamError("moderation down")),
    )
    assert await moderation_service.check_text("cold air intake") is None
