"""
Tests for the community gallery: listing, uploads, likes and moderation of
submissions.
"""
import base64

import pytest

from app.core.config import settings
from app.core.errors import ValidationError
from app.services.community_service import decode_image, redact_email

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
PNG_B64 = base64.b64encode(PNG_BYTES).decode()


def add_image(fake_db, email="poster@example.com", approved=True, is_deleted=False, minute=0, **fields):
    row = {
        "user_email": email,
        "image_url": f"https://storage.test/community/{minute}.png",
        "approved": approved,
        "is_deleted": is_deleted,
        "created_at": f"2026-10-01T12:{minute:02d}:00+00:00",
    }
    row.update(fields)
    return fake_db.insert_row("community_images", row)


def test_redact_email():
    assert redact_email("johnny@example.com") == "jo***@example.com"
    assert redact_email("a@example.com") == "a***@example.com"
    assert redact_email("") == ""


def test_decode_image_accepts_data_url_and_plain_base64():
    assert decode_image(f"data:image/png;base64,{PNG_B64}") == (PNG_BYTES, "image/png")
    assert decode_image(PNG_B64) == (PNG_BYTES, "image/png")
    assert decode_image(f"data:image/jpeg;base64,{PNG_B64}")[1] == "image/jpeg"


@pytest.mark.parametrize("payload", [
    "data:image/gif;base64,R0lGODlh",
    "data:image/png,rawtext",
    "!!!not base64!!!",
    "",
])
def test_decode_image_rejects_bad_payloads(payload):
    with pytest.raises(ValidationError):
        decode_image(payload)


def test_decode_image_size_limit(monkeypatch):
    monkeypatch.setattr(settings, "community_max_image_bytes", 10)
    with pytest.raises(ValidationError, match="too large"):
        decode_image(PNG_B64)


def test_list_images_is_public_and_paginated(client, fake_db):
    for minute in range(5):
        add_image(fake_db, minute=minute, email=f"user{minute}@example.com")
    add_image(fake_db, minute=10, approved=False)
    add_image(fake_db, minute=11, is_deleted=True)

    response = client.get("/api/v1/community/images?page=1&limit=2")

    assert response.status_code == 200
    body = response.json()
    assert [image["imageUrl"] for image in body["images"]] == [
        "https://storage.test/community/4.png",
        "https://storage.test/community/3.png",
    ]
    assert body["images"][0]["userEmail"] == "us***@example.com"
    assert body["pagination"] == {
        "currentPage": 1,
        "totalPages": 3,
        "totalCount": 5,
        "hasNext": True,
        "hasPrev": False,
    }

    last = client.get("/api/v1/community/images?page=3&limit=2").json()
    assert len(last["images"]) == 1
    assert last["pagination"]["hasNext"] is False
    assert last["pagination"]["hasPrev"] is True


def test_list_images_rejects_oversized_limit(client):
    assert client.get("/api/v1/community/images?limit=500").status_code == 400


def test_upload_requires_authentication(client):
    response = client.post("/api/v1/community/images", json={"image": PNG_B64})
    assert response.status_code == 401


def test_upload_stores_image_pending_approval(client, fake_db, make_user, headers_for):
    make_user("poster@example.com")
    response = client.post(
        "/api/v1/community/images",
        json={"image": f"data:image/png;base64,{PNG_B64}", "description": "  Fresh wrap  "},
        headers=headers_for("poster@example.com"),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["approved"] is False
    assert "after approval" in body["message"]

    row = fake_db.find("community_images", id=body["imageId"])
    assert row["description"] == "Fresh wrap"
    assert row["image_url"].startswith("https://storage.test/community/community/")
    stored = list(fake_db.storage.objects.values())
    assert stored[0] == (PNG_BYTES, {"content-type": "image/png"})


def test_upload_rejects_long_description(client, make_user, headers_for):
    make_user("poster@example.com")
    response = client.post(
        "/api/v1/community/images",
        json={"image": PNG_B64, "description": "x" * 501},
        headers=headers_for("poster@example.com"),
    )
    assert response.status_code == 400
    assert "500" in response.json()["error"]


def test_like_toggles(client, fake_db, make_user, headers_for):
    make_user("fan@example.com")
    image = add_image(fake_db)
    headers = headers_for("fan@example.com")

    liked = client.post(f"/api/v1/community/images/{image['id']}/like", headers=headers)
    assert liked.json() == {"liked": True, "likesCount": 1}

    unliked = client.post(f"/api/v1/community/images/{image['id']}/like", headers=headers)
    assert unliked.json() == {"liked": False, "likesCount": 0}


def test_like_unapproved_image_is_404(client, fake_db, make_user, headers_for):
    make_user("fan@example.com")
    image = add_image(fake_db, approved=False)
    response = client.post(f"/api/v1/community/images/{image['id']}/like", headers=headers_for("fan@example.com"))
    assert response.status_code == 404


def test_delete_only_own_image(client, fake_db, make_user, headers_for):
    make_user("owner@example.com")
    make_user("other@example.com")
    image = add_image(fake_db, email="owner@example.com")

    denied = client.delete(f"/api/v1/community/images/{image['id']}", headers=headers_for("other@example.com"))
    assert denied.status_code == 404

    deleted = client.delete(f"/api/v1/community/images/{image['id']}", headers=headers_for("owner@example.com"))
    assert deleted.status_code == 200
    assert fake_db.find("community_images", id=image["id"])["is_deleted"] is True


def test_admin_approves_image(client, fake_db, make_user, headers_for):
    make_user("admin@example.com", plan="ADMIN")
    make_user("user@example.com")
    image = add_image(fake_db, approved=False)

    forbidden = client.post(
        f"/api/v1/admin/community/{image['id']}/approve", headers=headers_for("user@example.com"),
    )
    assert forbidden.status_code == 403

    approved = client.post(
        f"/api/v1/admin/community/{image['id']}/approve", headers=headers_for("admin@example.com"),
    )
    assert approved.status_code == 200
    assert fake_db.find("community_images", id=image["id"])["approved"] is True


@pytest.mark.parametrize("method, path", [
    ("post", "/api/v1/community/images/abc/like"),
    ("delete", "/api/v1/community/images/abc"),
])
def test_malformed_image_id_is_rejected(client, make_user, headers_for, method, path):
    make_user("fan@example.com")

    response = getattr(client, method)(path, headers=headers_for("fan@example.com"))

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"


def test_missing_image_is_404(client, make_user, headers_for):
    make_user("fan@example.com")

    response = client.delete(
        "/api/v1/community/images/00000000-0000-4000-8000-000000000000", headers=headers_for("fan@example.com"),
    )

    assert response.status_code == 404
