"""
Community gallery: public listing, uploads to Supabase Storage, likes and
moderation state.
"""
import base64
import binascii
import logging
import math
import re
import secrets
import time
from typing import Any, Dict, Optional, Tuple

from ..core.config import settings
from ..core.errors import NotFoundError, UpstreamError, ValidationError
from ..core.supabase_client import supabase_client
from ..schemas.community import (
    CommunityImage,
    CommunityImagePage,
    CommunityUploadRequest,
    CommunityUploadResponse,
    LikeResponse,
    Pagination,
)
from .entitlement_service import parse_timestamp
from .moderation_service import moderation_service

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 50
ALLOWED_CONTENT_TYPES = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}
_DATA_URL = re.compile(r"^data:(?P<type>[\w/+.-]+);base64,(?P<data>.*)$", re.DOTALL)


def redact_email(email: str) -> str:
    """Keep at most the first two characters of the local part: ``jo***@example.com``."""
    local, at, domain = (email or "").partition("@")
    if not at:
        return email or ""
    return f"{local[:2]}***@{domain}"


def decode_image(payload: str) -> Tuple[bytes, str]:
    """
    Decode a base64 payload or data URL.

    Returns ``(bytes, content_type)``.

    Raises:
        ValidationError: not valid base64, unsupported type, empty or too large
    """
    content_type = "image/png"
    data = payload.strip()

    match = _DATA_URL.match(data)
    if match:
        content_type = match.group("type").lower()
        data = match.group("data")
    elif data.startswith("data:"):
        raise ValidationError("Image data URL must be base64 encoded")

    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError(f"Unsupported image type: {content_type}")

    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Image is not valid base64")

    if not raw:
        raise ValidationError("Image is required")
    if len(raw) > settings.community_max_image_bytes:
        raise ValidationError("Image is too large")
    return raw, content_type


def _to_image(row: Dict[str, Any]) -> CommunityImage:
    return CommunityImage(
        id=str(row["id"]),
        image_url=row["image_url"],
        description=row.get("description"),
        likes_count=int(row.get("likes_count") or 0),
        created_at=parse_timestamp(row.get("created_at")),
        user_email=redact_email(row.get("user_email", "")),
    )


class CommunityService:

    def __init__(self):
        self._supabase = None

    @property
    def supabase(self):
        if self._supabase is None:
            self._supabase = supabase_client.service_client
        return self._supabase

    @supabase.setter
    def supabase(self, client):
        self._supabase = client

    def list_images(self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> CommunityImagePage:
        """Approved, non-deleted images, newest first."""
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        offset = (page - 1) * limit

        result = (
            self.supabase.table("community_images")
            .select("id, image_url, description, likes_count, created_at, user_email", count="exact")
            .eq("approved", True)
            .eq("is_deleted", False)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        rows = result.data or []
        total_count = result.count if result.count is not None else len(rows)
        total_pages = math.ceil(total_count / limit) if total_count else 0

        return CommunityImagePage(
            images=[_to_image(row) for row in rows],
            pagination=Pagination(
                current_page=page,
                total_pages=total_pages,
                total_count=total_count,
                has_next=page < total_pages,
                has_prev=page > 1,
            ),
        )

    async def upload(self, email: str, request: CommunityUploadRequest) -> CommunityUploadResponse:
        description: Optional[str] = (request.description or "").strip() or None
        if description and len(description) > settings.community_description_max_length:
            raise ValidationError(
                f"Description must be at most {settings.community_description_max_length} characters"
            )
        await moderation_service.ensure_allowed({"description": description})

        raw, content_type = decode_image(request.image)
        extension = ALLOWED_CONTENT_TYPES[content_type]
        path = f"community/{int(time.time() * 1000)}-{secrets.token_hex(4)}.{extension}"

        bucket = self.supabase.storage.from_(settings.storage_bucket)
        try:
            bucket.upload(path, raw, {"content-type": content_type})
        except Exception as e:
            logger.error(f"Storage upload failed for {email}: {e}")
            raise UpstreamError("Failed to upload image")
        image_url = bucket.get_public_url(path)

        approved = settings.community_auto_approve
        result = self.supabase.table("community_images").insert({
            "user_email": email,
            "image_url": image_url,
            "description": description,
            "approved": approved,
        }).execute()
        row = result.data[0]
        logger.info(f"Community image {row['id']} uploaded by {email} (approved={approved})")

        message = (
            "Image uploaded successfully!"
            if approved
            else "Image uploaded successfully! It will appear in the community feed after approval."
        )
        return CommunityUploadResponse(message=message, image_id=str(row["id"]), approved=approved)

    def toggle_like(self, image_id: str, email: str) -> LikeResponse:
        """Like or unlike an approved image; the count is kept by the database."""
        result = self.supabase.rpc(
            "toggle_community_like",
            {"p_image_id": image_id, "p_email": email},
        ).execute()
        rows = result.data or []
        row = rows[0] if isinstance(rows, list) and rows else rows
        if not row or row.get("liked") is None:
            raise NotFoundError("Image not found")
        return LikeResponse(liked=bool(row["liked"]), likes_count=int(row.get("likes_count") or 0))

    def delete_image(self, image_id: str, email: str) -> None:
        """Soft-delete one of the caller's own images."""
        result = (
            self.supabase.table("community_images")
            .update({"is_deleted": True})
            .eq("id", image_id)
            .eq("user_email", email)
            .eq("is_deleted", False)
            .execute()
        )
        if not result.data:
            raise NotFoundError("Image not found")
        logger.info(f"Community image {image_id} deleted by {email}")

    def approve_image(self, image_id: str) -> None:
        result = (
            self.supabase.table("community_images")
            .update({"approved": True})
            .eq("id", image_id)
            .execute()
        )
        if not result.data:
            raise NotFoundError("Image not found")
        logger.info(f"Community image {image_id} approved")


community_service = CommunityService()
