from fastapi import APIRouter, Depends, Query
from typing import Literal, Optional

from agora.core.config import settings
from agora.dependencies.auth import get_current_user
from agora.dependencies.services import get_membership_service, get_notification_service
from agora.models.user import User
from agora.schemas.member import ApiResponse, MemberWithCommunityOut, MembershipPage
from agora.schemas.user import UserSummary
from agora.services.membership_service import MembershipService
from agora.services.notification_service import NotificationService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=ApiResponse[UserSummary])
async def get_my_profile(
    current_user: User = Depends(get_current_user)
):
    """Get current user's public profile"""
    return ApiResponse(data=UserSummary.model_validate(current_user))


@router.get("/me/memberships", response_model=ApiResponse[MembershipPage])
async def get_my_memberships(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    status: Literal["pending", "approved", "rejected", "banned", "all"] = Query("approved"),
    role: Optional[Literal["member", "moderator", "admin"]] = Query(None),
    current_user: User = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    """Caller's memberships across communities"""
    result = await service.get_user_memberships(
        current_user.id, page=page, limit=limit, status=status, role=role,
    )
    return ApiResponse(data=MembershipPage(
        memberships=[MemberWithCommunityOut.model_validate(m) for m in result["memberships"]],
        pagination=result["pagination"],
    ))


@router.get("/me/notifications", response_model=ApiResponse[list[dict]])
async def get_my_notifications(
    limit: int = Query(50, ge=1, le=settings.MAX_PAGE_LIMIT),
    current_user: User = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notification_service),
):
    """Most recent stored notifications for the caller"""
    notifications = await notifier.get_user_notifications(current_user.id, limit)
    return ApiResponse(data=notifications)
