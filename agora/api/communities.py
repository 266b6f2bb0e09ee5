from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from agora.schemas.community import CommunityCreate, CommunityOut
from agora.schemas.member import ApiResponse
from agora.services.community_service import CommunityService
from agora.core.database import get_session
from agora.dependencies.auth import get_current_user
from agora.models.user import User

router = APIRouter(prefix="/communities", tags=["communities"])


@router.post("", response_model=ApiResponse[CommunityOut], status_code=status.HTTP_201_CREATED)
async def create_community(
    data: CommunityCreate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Create a new community owned by the caller"""
    service = CommunityService(db)
    community = await service.create_community(data, current_user)
    return ApiResponse(data=CommunityOut.model_validate(community))


@router.get("/{community_id}", response_model=ApiResponse[CommunityOut])
async def get_community(
    community_id: UUID,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Get a specific community by ID"""
    service = CommunityService(db)

    community = await service.get_by_id(community_id)
    if not community:
        raise HTTPException(
            status.HTTP_404_NOT_FOUND,
            "Community not found"
        )

    return ApiResponse(data=CommunityOut.model_validate(community))
