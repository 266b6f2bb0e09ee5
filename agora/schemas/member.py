from pydantic import BaseModel, Field
from uuid import UUID
from typing import Any, Generic, List, Optional, TypeVar
from datetime import datetime

from agora.models.member import MemberRole, MemberStatus
from agora.schemas.community import CommunitySummary
from agora.schemas.user import UserSummary

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Uniform response envelope"""
    success: bool = True
    data: Optional[T] = None
    error: Optional[str] = None


# Requests
class ApplicationRequest(BaseModel):
    """Free-form application data forwarded to community admins"""
    message: Optional[str] = Field(None, max_length=1000)

    class Config:
        extra = "allow"


class RejectRequest(BaseModel):
    reason: str = Field("", max_length=500)


class RoleChangeRequest(BaseModel):
    role: str


class StatusUpdateRequest(BaseModel):
    status: str


# Responses
class MemberOut(BaseModel):
    id: UUID
    user_id: UUID
    community_id: UUID
    role: MemberRole
    status: MemberStatus
    joined_at: datetime
    approved_at: Optional[datetime] = None
    approved_by: Optional[UUID] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MemberWithUserOut(MemberOut):
    user: UserSummary


class MemberWithCommunityOut(MemberOut):
    community: CommunitySummary


class MemberDetailOut(MemberOut):
    user: UserSummary
    community: CommunitySummary


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class MemberPage(BaseModel):
    members: List[MemberWithUserOut]
    pagination: Pagination


class ApplicationPage(BaseModel):
    applications: List[MemberWithUserOut]
    pagination: Pagination


class MembershipPage(BaseModel):
    memberships: List[MemberWithCommunityOut]
    pagination: Pagination


class MembershipResult(BaseModel):
    membership: MemberOut
    message: str


class MemberStatusOut(BaseModel):
    membership: MemberWithUserOut


class HistoryEntry(BaseModel):
    action: str
    timestamp: Optional[datetime] = None
    details: str


class MembershipHistoryOut(BaseModel):
    membership: MemberDetailOut
    history: List[HistoryEntry]


class MemberCountOut(BaseModel):
    count: int
    status: str


class ErrorOut(BaseModel):
    success: bool = False
    error: str
    data: Optional[Any] = None
