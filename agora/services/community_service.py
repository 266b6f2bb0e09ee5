from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from typing import Optional

from agora.core.errors import ConflictError
from agora.core.logger import logger
from agora.models.community import Community
from agora.models.member import Member, MemberRole, MemberStatus, utcnow
from agora.models.user import User
from agora.schemas.community import CommunityCreate
from agora.utils.ids import as_uuid


class CommunityService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_community(self,
        data: CommunityCreate,
        creator: User
    ) -> Community:
        """Create a new community and enrol the creator as an approved admin"""
        existing = await self.get_by_name(data.name)
        if existing:
            logger.warning("community_creation_failed_name_exists", name=data.name, creator_id=str(creator.id))
            raise ConflictError("Community with this name already exists")

        community = Community(
            name=data.name,
            description=data.description,
            logo_url=data.logo_url,
            require_approval=data.require_approval,
            allow_public_voting=data.allow_public_voting,
            max_members=data.max_members,
            voting_threshold=data.voting_threshold,
            created_by=creator.id,
        )
        self.db.add(community)

        try:
            await self.db.flush()

            # The creator's row carries the admin role; owner status comes from created_by.
            now = utcnow()
            membership = Member(
                user_id=creator.id,
                community_id=community.id,
                role=MemberRole.ADMIN,
                status=MemberStatus.APPROVED,
                joined_at=now,
                approved_at=now,
                approved_by=creator.id,
                updated_at=now,
            )
            self.db.add(membership)
            await self.db.commit()
            await self.db.refresh(community)
            logger.info("community_created", community_id=str(community.id), name=community.name, creator_id=str(creator.id))

        except IntegrityError:
            await self.db.rollback()
            logger.error("community_creation_failed_integrity", name=data.name, creator_id=str(creator.id))
            raise ConflictError("Community with this name already exists")

        return community

    async def get_by_name(self,
        name: str
    ) -> Optional[Community]:
        stmt = select(Community).where(Community.name == name.lower())
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_by_id(self,
        community_id,
        for_update: bool = False,
    ) -> Optional[Community]:
        """Look up a community; `for_update` row-locks it where the database supports it"""
        stmt = select(Community).where(Community.id == as_uuid(community_id))
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_admin_user_ids(self, community: Community) -> list:
        """Owner plus every approved admin of the community"""
        stmt = select(Member.user_id).where(
            Member.community_id == community.id,
            Member.role == MemberRole.ADMIN,
            Member.status == MemberStatus.APPROVED,
        )
        result = await self.db.execute(stmt)
        user_ids = [community.created_by]
        for user_id in result.scalars().all():
            if user_id != community.created_by:
                user_ids.append(user_id)
        return user_ids
