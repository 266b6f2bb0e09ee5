from uuid import UUID

from fastapi import Request, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import redis.asyncio as redis

from agora.core.token import decode_token
from agora.core.database import get_session
from agora.models.community import Community
from agora.models.member import Member, MemberRole, MemberStatus
from agora.models.user import User
from agora.services.community_service import CommunityService
from agora.utils.redis import get_redis, token_in_blacklist


class TokenBearer(HTTPBearer):
    """ Base class: extracts the bearer token, decodes it and checks its type """

    async def __call__(self, request: Request) -> dict:
        credentials: HTTPAuthorizationCredentials = await super().__call__(request)

        if not credentials or credentials.scheme.lower() != "bearer":
            raise HTTPException(status_code=403, detail="No bearer token provided")

        payload = decode_token(credentials.credentials)
        self.verify_token_data(payload)

        return payload

    def verify_token_data(self, payload: dict) -> None:
        raise NotImplementedError


class AccessTokenBearer(TokenBearer):
    def verify_token_data(self, payload: dict) -> None:
        if payload.get("refresh"):
            raise HTTPException(status_code=403, detail="Refresh token not allowed")


async def get_current_user(
    payload: dict = Depends(AccessTokenBearer()),
    db: AsyncSession = Depends(get_session),
    client: redis.Redis = Depends(get_redis),
) -> User:

    jti = payload.get("jti")
    if jti and await token_in_blacklist(client, jti):
        raise HTTPException(403, "Token revoked")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(401, "Invalid token payload")

    try:
        user_uuid = UUID(user_id)
    except ValueError:
        raise HTTPException(401, "Invalid token payload")

    result = await db.execute(select(User).where(User.id == user_uuid))
    user = result.scalars().first()

    if not user:
        raise HTTPException(404, "User not found")

    return user


async def _load_community(community_id: UUID, db: AsyncSession) -> Community:
    community = await CommunityService(db).get_by_id(community_id)
    if not community:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Community not found")
    return community


async def _approved_role(db: AsyncSession, community_id: UUID, user_id: UUID):
    stmt = select(Member.role).where(
        Member.community_id == community_id,
        Member.user_id == user_id,
        Member.status == MemberStatus.APPROVED,
    )
    result = await db.execute(stmt)
    return result.scalars().first()


async def require_community_admin(
    community_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Owner or approved admin of the community in the path"""
    community = await _load_community(community_id, db)
    if community.is_owner(current_user.id):
        return current_user

    if await _approved_role(db, community.id, current_user.id) == MemberRole.ADMIN:
        return current_user

    raise HTTPException(
        status.HTTP_403_FORBIDDEN,
        "Insufficient permissions. Owner or admin access required.",
    )


async def require_community_member(
    community_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Owner or approved member of the community in the path"""
    community = await _load_community(community_id, db)
    if community.is_owner(current_user.id):
        return current_user

    if await _approved_role(db, community.id, current_user.id) is not None:
        return current_user

    raise HTTPException(
        status.HTTP_403_FORBIDDEN,
        "Access denied. You must be a member of this community.",
    )
