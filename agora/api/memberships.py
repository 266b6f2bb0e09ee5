from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status

from agora.core.config import settings
from agora.dependencies.auth import get_current_user, require_community_admin, require_community_member
from agora.dependencies.services import get_membership_service
from agora.models.member import MemberStatus
from agora.models.user import User
from agora.schemas.member import (
    ApiResponse, ApplicationPage, ApplicationRequest, HistoryEntry,
    MemberCountOut, MemberDetailOut, MemberOut, MemberPage, MemberStatusOut,
    MemberWithUserOut, MembershipHistoryOut, MembershipResult, RejectRequest,
    RoleChangeRequest, StatusUpdateRequest,
)
from agora.services.membership_service import MembershipService

router = APIRouter(tags=["memberships"])

StatusFilter = Literal["pending", "approved", "rejected", "banned", "all"]
RoleFilter = Literal["member", "moderator", "admin"]


def _result(membership, message: str) -> ApiResponse[MembershipResult]:
    return ApiResponse(data=MembershipResult(
        membership=MemberOut.model_validate(membership),
        message=message,
    ))


@router.post(
    "/communities/{community_id}/members/apply",
    response_model=ApiResponse[MembershipResult],
    status_code=status.HTTP_201_CREATED,
)
async def apply_to_community(
    community_id: UUID,
    application: Optional[ApplicationRequest] = Body(None),
    current_user: User = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    """Apply to join a community (auto-approved when the community is open)"""
    application_data = application.model_dump(exclude_none=True) if application else {}
    membership = await service.apply_to_community(community_id, current_user.id, application_data)

    if membership.status == MemberStatus.APPROVED:
        return _result(membership, "Successfully joined the community!")
    return _result(membership, "Application submitted successfully. Waiting for approval.")


@router.get("/communities/{community_id}/members", response_model=ApiResponse[MemberPage])
async def get_community_members(
    community_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    status: StatusFilter = Query("approved"),
    role: Optional[RoleFilter] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    current_user: User = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    result = await service.get_community_members(
        community_id, page=page, limit=limit, status=status, role=role,
        search=search.strip() if search else None,
    )
    return ApiResponse(data=MemberPage(
        members=[MemberWithUserOut.model_validate(m) for m in result["members"]],
        pagination=result["pagination"],
    ))


@router.get("/communities/{community_id}/members/pending", response_model=ApiResponse[ApplicationPage])
async def get_pending_applications(
    community_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    search: Optional[str] = Query(None, max_length=100),
    admin: User = Depends(require_community_admin),
    service: MembershipService = Depends(get_membership_service),
):
    """Pending applications, oldest first (admin only)"""
    result = await service.get_pending_applications(
        community_id, page=page, limit=limit,
        search=search.strip() if search else None,
    )
    return ApiResponse(data=ApplicationPage(
        applications=[MemberWithUserOut.model_validate(m) for m in result["applications"]],
        pagination=result["pagination"],
    ))


@router.get("/communities/{community_id}/members/count", response_model=ApiResponse[MemberCountOut])
async def get_member_count(
    community_id: UUID,
    status: StatusFilter = Query("approved"),
    current_user: User = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    count = await service.get_member_count(community_id, status)
    return ApiResponse(data=MemberCountOut(count=count, status=status))


@router.get(
    "/communities/{community_id}/members/{member_id}/status",
    response_model=ApiResponse[MemberStatusOut],
)
async def get_member_status(
    community_id: UUID,
    member_id: UUID,
    current_user: User = Depends(require_community_member),
    service: MembershipService = Depends(get_membership_service),
):
    membership = await service.get_member_status(community_id, member_id)
    return ApiResponse(data=MemberStatusOut(membership=MemberWithUserOut.model_validate(membership)))


@router.put(
    "/communities/{community_id}/members/{member_id}/approve",
    response_model=ApiResponse[MembershipResult],
)
async def approve_member(
    community_id: UUID,
    member_id: UUID,
    admin: User = Depends(require_community_admin),
    service: MembershipService = Depends(get_membership_service),
):
    membership = await service.approve_member(community_id, member_id, admin.id)
    return _result(membership, "Member approved successfully")


@router.put(
    "/communities/{community_id}/members/{member_id}/reject",
    response_model=ApiResponse[MembershipResult],
)
async def reject_member(
    community_id: UUID,
    member_id: UUID,
    body: Optional[RejectRequest] = Body(None),
    admin: User = Depends(require_community_admin),
    service: MembershipService = Depends(get_membership_service),
):
    reason = body.reason if body else ""
    membership = await service.reject_member(community_id, member_id, admin.id, reason)
    return _result(membership, "Member application rejected")


@router.delete(
    "/communities/{community_id}/members/{member_id}",
    response_model=ApiResponse[MembershipResult],
)
async def remove_member(
    community_id: UUID,
    member_id: UUID,
    admin: User = Depends(require_community_admin),
    service: MembershipService = Depends(get_membership_service),
):
    membership = await service.remove_member(community_id, member_id, admin.id)
    return _result(membership, "Member removed successfully")


@router.put(
    "/communities/{community_id}/members/{member_id}/role",
    response_model=ApiResponse[MembershipResult],
)
async def change_member_role(
    community_id: UUID,
    member_id: UUID,
    body: RoleChangeRequest,
    admin: User = Depends(require_community_admin),
    service: MembershipService = Depends(get_membership_service),
):
    membership = await service.change_member_role(community_id, member_id, body.role, admin.id)
    return _result(membership, f"Member role changed to {membership.role.value}")


@router.put(
    "/communities/{community_id}/members/{member_id}/status",
    response_model=ApiResponse[MembershipResult],
)
async def update_member_status(
    community_id: UUID,
    member_id: UUID,
    body: StatusUpdateRequest,
    admin: User = Depends(require_community_admin),
    service: MembershipService = Depends(get_membership_service),
):
    membership = await service.update_member_status(community_id, member_id, body.status, admin.id)
    return _result(membership, f"Member status updated to {membership.status.value}")


@router.get("/memberships/{membership_id}/history", response_model=ApiResponse[MembershipHistoryOut])
async def get_membership_history(
    membership_id: UUID,
    current_user: User = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    result = await service.get_membership_history(membership_id)
    return ApiResponse(data=MembershipHistoryOut(
        membership=MemberDetailOut.model_validate(result["membership"]),
        history=[HistoryEntry(**entry) for entry in result["history"]],
    ))
