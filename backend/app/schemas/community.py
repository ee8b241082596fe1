"""
Community gallery schemas.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import Field

from .base import CamelModel


class CommunityImage(CamelModel):
    """A shared image for public display (author email redacted)."""
    id: str
    image_url: str
    description: Optional[str] = None
    likes_count: int = 0
    created_at: datetime
    user_email: str


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_count: int
    has_next: bool
    has_prev: bool


class CommunityImagePage(CamelModel):
    images: List[CommunityImage]
    pagination: Pagination


class CommunityUploadRequest(CamelModel):
    image: str = Field(..., min_length=1, description="Base64 payload or data URL")
    description: Optional[str] = Field(None, description="Optional caption")


class CommunityUploadResponse(CamelModel):
    success: bool = True
    message: str
    image_id: str
    approved: bool


class LikeResponse(CamelModel):
    liked: bool
    likes_count: int
