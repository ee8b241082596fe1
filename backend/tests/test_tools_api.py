"""
End-to-end tests for the metered AI tool endpoints with the AI services
mocked out.
"""
from unittest.mock import AsyncMock

import pytest

from app.core.errors import UpstreamError
from app.schemas.tools import BuildPlanResult, ImageResult, PerformanceResult
from app.services.build_plan_service import build_plan_service
from app.services.image_service import image_service
from app.services.performance_service import performance_service


BUILD_REQUEST = {"vehicleSpec": {"year": "2020", "make": "Toyota", "model": "Supra", "question": "Stage 1"}}

PERFORMANCE_REQUEST = {"make": "Subaru", "model": "WRX", "year": "2019", "modifications": "Downpipe"}

IMAGE_REQUEST = {
    "promptSpec": {
        "car": {"year": "2020", "make": "Toyota", "model": "Supra", "color": "Red"},
        "scene": {"locationKey": "us_canyons"},
    },
    "imageParams": {"width": 1024, "height": 768},
}


@pytest.fixture
def build_plan():
    return BuildPlanResult.model_validate({
        "stage": "Stage 1",
        "totalPartsCost": 900,
        "totalDIYCost": 1000,
        "totalProfessionalCost": 1250,
        "recommendations": [{"name": "Intake", "partPrice": 300}],
        "explanation": "Breathe, then tune.",
    })


@pytest.fixture
def mock_build(monkeypatch, build_plan):
    generate = AsyncMock(return_value=build_plan)
    monkeypatch.setattr(build_plan_service, "generate", generate)
    return generate


def test_free_user_gets_one_build_plan(client, fake_db, make_user, headers_for, mock_build):
    make_user("free@example.com")
    headers = headers_for("free@example.com")

    first = client.post("/api/v1/tools/build-plan", json=BUILD_REQUEST, headers=headers)
    assert first.status_code == 200
    assert first.json()["stage"] == "Stage 1"
    assert first.json()["totalDIYCost"] == 1000
    assert fake_db.find("users", email="free@example.com")["build_used"] == 1

    second = client.post("/api/v1/tools/build-plan", json=BUILD_REQUEST, headers=headers)
    assert second.status_code == 403
    body = second.json()
    assert body["error"] == "Quota exceeded"
    assert body["plan"] == "FREE"
    assert body["used"] == 1
    assert body["limit"] == 1
    assert body["toolType"] == "build"
    assert "Upgrade" in body["message"]
    assert mock_build.await_count == 1


def test_plus_user_gets_plus_build_limit(client, fake_db, make_user, headers_for, mock_build):
    make_user("plus@example.com", plan="PLUS")
    headers = headers_for("plus@example.com", "PLUS")

    statuses = [
        client.post("/api/v1/tools/build-plan", json=BUILD_REQUEST, headers=headers).status_code
        for _ in range(3)
    ]

    assert statuses == [200, 200, 200]
    assert fake_db.find("users", email="plus@example.com")["build_used"] == 3
    check = client.post("/api/v1/quota/check", json={"toolType": "build"}, headers=headers).json()
    assert check["limit"] == 10
    assert check["remaining"] == 7


def test_failed_generation_does_not_consume_quota(client, fake_db, make_user, headers_for, monkeypatch):
    make_user("free@example.com")
    monkeypatch.setattr(
        build_plan_service, "generate", AsyncMock(side_effect=UpstreamError("AI response missing required fields.")),
    )

    response = client.post("/api/v1/tools/build-plan", json=BUILD_REQUEST, headers=headers_for("free@example.com"))

    assert response.status_code == 502
    assert response.json() == {"error": "AI response missing required fields.", "retryable": True}
    assert fake_db.find("users", email="free@example.com")["build_used"] == 0


def test_anonymous_visitor_gets_one_try(client, mock_build):
    headers = {"X-Anonymous-Id": "device-abc"}

    assert client.post("/api/v1/tools/build-plan", json=BUILD_REQUEST, headers=headers).status_code == 200

    denied = client.post("/api/v1/tools/build-plan", json=BUILD_REQUEST, headers=headers)
    assert denied.status_code == 403
    assert denied.json()["plan"] == "ANONYMOUS"

    # A different device has its own allowance
    other = client.post("/api/v1/tools/build-plan", json=BUILD_REQUEST, headers={"X-Anonymous-Id": "device-xyz"})
    assert other.status_code == 200


def test_invalid_token_is_treated_as_anonymous(client, fake_db, mock_build):
    response = client.post(
        "/api/v1/tools/build-plan",
        json=BUILD_REQUEST,
        headers={"Authorization": "Bearer not-a-token", "X-Anonymous-Id": "device-1"},
    )
    assert response.status_code == 200
    assert fake_db.tables.get("users", []) == []


def test_legacy_email_header_is_ignored_by_default(client, fake_db, make_user, mock_build):
    make_user("victim@example.com", build_used=0)
    response = client.post(
        "/api/v1/tools/build-plan",
        json=BUILD_REQUEST,
        headers={"x-user-email": "victim@example.com", "X-Anonymous-Id": "device-2"},
    )
    assert response.status_code == 200
    assert fake_db.find("users", email="victim@example.com")["build_used"] == 0


def test_admin_is_not_metered(client, fake_db, make_user, headers_for, mock_build):
    make_user("admin@example.com", plan="ADMIN", build_used=999)
    response = client.post(
        "/api/v1/tools/build-plan", json=BUILD_REQUEST, headers=headers_for("admin@example.com", "ADMIN"),
    )
    assert response.status_code == 200


def test_invalid_body_returns_400(client, headers_for, make_user):
    make_user("free@example.com")
    response = client.post(
        "/api/v1/tools/build-plan",
        json={"vehicleSpec": {"make": "Toyota"}},
        headers=headers_for("free@example.com"),
    )
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid request"
    assert any(detail["field"].endswith("year") for detail in body["details"])


def test_unknown_scene_key_is_rejected(client):
    bad = {**IMAGE_REQUEST, "promptSpec": {**IMAGE_REQUEST["promptSpec"], "scene": {"locationKey": "moon"}}}
    response = client.post("/api/v1/tools/generate-image", json=bad, headers={"X-Anonymous-Id": "d"})
    assert response.status_code == 400


def test_performance_endpoint(client, fake_db, make_user, headers_for, monkeypatch):
    make_user("plus@example.com", plan="PLUS", perf_used=3)
    result = PerformanceResult.model_validate({
        "stockPerformance": {"horsepower": 268, "whp": 228, "zeroToSixty": 5.4},
        "estimatedPerformance": {"horsepower": 300, "whp": 255, "zeroToSixty": 5.0},
        "explanation": "Downpipe adds flow.",
        "confidence": "High",
    })
    estimate = AsyncMock(return_value=result)
    monkeypatch.setattr(performance_service, "estimate", estimate)

    response = client.post("/api/v1/tools/performance", json=PERFORMANCE_REQUEST, headers=headers_for("plus@example.com"))

    assert response.status_code == 200
    assert response.json()["estimatedPerformance"]["zeroToSixty"] == 5.0
    assert response.json()["sources"] == []
    assert estimate.await_args.args[0].modifications == "Downpipe"
    assert fake_db.find("users", email="plus@example.com")["perf_used"] == 4


def test_generate_image_endpoint(client, fake_db, make_user, headers_for, monkeypatch):
    make_user("free@example.com", image_used=2)
    monkeypatch.setattr(
        image_service, "generate",
        AsyncMock(return_value=ImageResult(image="aGVsbG8=", prompt="A 2020 Toyota Supra", timestamp=1)),
    )

    ok = client.post("/api/v1/tools/generate-image", json=IMAGE_REQUEST, headers=headers_for("free@example.com"))
    assert ok.status_code == 200
    assert ok.json()["image"] == "aGVsbG8="

    denied = client.post("/api/v1/tools/generate-image", json=IMAGE_REQUEST, headers=headers_for("free@example.com"))
    assert denied.status_code == 403
    assert denied.json()["limit"] == 3


def test_quota_endpoints(client, make_user, headers_for):
    make_user("free@example.com", perf_used=1)
    headers = headers_for("free@example.com")

    overview = client.get("/api/v1/quota", headers=headers).json()
    assert overview["plan"] == "FREE"
    assert overview["tools"]["performance"] == {"used": 1, "limit": 1, "remaining": 0}
    assert overview["tools"]["image"]["remaining"] == 3

    check = client.post("/api/v1/quota/check", json={"toolType": "performance"}, headers=headers).json()
    assert check["allowed"] is False
    assert check["toolType"] == "performance"

    anonymous = client.get("/api/v1/quota", headers={"X-Anonymous-Id": "device-9"}).json()
    assert anonymous["anonymous"] is True
    assert anonymous["plan"] == "ANONYMOUS"
