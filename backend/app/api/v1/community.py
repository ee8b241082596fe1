"""
Community gallery API routes.

Listing is public; uploading, liking and deleting need a signed-in user.
"""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from ...core.config import settings
from ...core.dependencies import RequestContext, require_admin, require_user
from ...core.rate_limit import limiter
from ...schemas.auth import MessageResponse
from ...schemas.community import (
    CommunityImagePage,
    CommunityUploadRequest,
    CommunityUploadResponse,
    LikeResponse,
)
from ...services.community_service import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, community_service


router = APIRouter(prefix="/community", tags=["Community"])
admin_router = APIRouter(prefix="/admin/community", tags=["Admin"])


@router.get("/images", response_model=CommunityImagePage)
@limiter.limit(settings.public_rate_limit)
async def list_images(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
):
    """Approved images, newest first, with author emails partially hidden."""
    return community_service.list_images(page=page, limit=limit)


@router.post("/images", response_model=CommunityUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_image(
    body: CommunityUploadRequest,
    context: RequestContext = Depends(require_user),
):
    return await community_service.upload(context.email, body)


@router.post("/images/{image_id}/like", response_model=LikeResponse)
async def toggle_like(image_id: UUID, context: RequestContext = Depends(require_user)):
    return community_service.toggle_like(str(image_id), context.email)


@router.delete("/images/{image_id}", response_model=MessageResponse)
async def delete_image(image_id: UUID, context: RequestContext = Depends(require_user)):
    community_service.delete_image(str(image_id), context.email)
    return MessageResponse(message="Image deleted")


@admin_router.post("/{image_id}/approve", response_model=MessageResponse)
async def approve_image(image_id: UUID, context: RequestContext = Depends(require_admin)):
    community_service.approve_image(str(image_id))
    return MessageResponse(message="Image approved")
