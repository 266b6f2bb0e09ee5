import math
from typing import Optional

from sqlalchemy import select, func, desc, asc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager

from agora.core.config import settings
from agora.core.errors import ConflictError, ForbiddenError, InvalidArgumentError, NotFoundError
from agora.core.logger import logger
from agora.models.community import Community
from agora.models.member import Member, MemberRole, MemberStatus, utcnow
from agora.models.user import User
from agora.services.community_service import CommunityService
from agora.services.notification_service import NotificationService
from agora.utils.ids import as_uuid
from agora.utils.redis import MembershipCache

ALL_STATUSES = "all"


def parse_role(value) -> MemberRole:
    try:
        return MemberRole(value)
    except ValueError:
        raise InvalidArgumentError("Invalid role")


def parse_status(value, allow_all: bool = False) -> Optional[MemberStatus]:
    """Parse a status filter; `all` (when allowed) means no filter and yields None"""
    if allow_all and value == ALL_STATUSES:
        return None
    try:
        return MemberStatus(value)
    except ValueError:
        raise InvalidArgumentError("Invalid status")


class MembershipService:
    """
    Membership lifecycle for communities.

    pending -> approved | rejected, approved -> banned; role is orthogonal to
    status. The community owner (``Community.created_by``) is never stored as a
    role and its membership row cannot be re-roled, re-statused or removed.

    Collaborators are injected: the session is the membership store, the
    community service answers community lookups, the cache is invalidated after
    every mutation and the notifier is best-effort.
    """

    def __init__(
        self,
        db: AsyncSession,
        cache: MembershipCache,
        notifier: NotificationService,
        communities: Optional[CommunityService] = None,
    ):
        self.db = db
        self.cache = cache
        self.notifier = notifier
        self.communities = communities or CommunityService(db)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    async def apply_to_community(self, community_id, user_id, application_data: Optional[dict] = None) -> Member:
        community_id = as_uuid(community_id)
        user_id = as_uuid(user_id)

        community = await self.communities.get_by_id(community_id, for_update=True)
        if not community:
            raise NotFoundError("Community not found")

        if not community.is_active:
            raise ConflictError("Community is not active")

        existing = await self._get_membership(community_id, user_id)
        if existing:
            logger.warning("membership_application_duplicate", community_id=str(community_id), user_id=str(user_id))
            raise ConflictError("User already has a membership in this community")

        await self._ensure_capacity(community)

        now = utcnow()
        auto_approve = not community.require_approval
        membership = Member(
            community_id=community_id,
            user_id=user_id,
            role=MemberRole.MEMBER,
            status=MemberStatus.APPROVED if auto_approve else MemberStatus.PENDING,
            joined_at=now,
            approved_at=now if auto_approve else None,
            approved_by=user_id if auto_approve else None,
            updated_at=now,
        )
        self.db.add(membership)

        try:
            await self.db.commit()
        except IntegrityError:
            # a concurrent apply for the same pair won the unique constraint
            await self.db.rollback()
            logger.warning("membership_application_duplicate", community_id=str(community_id), user_id=str(user_id))
            raise ConflictError("User already has a membership in this community")

        await self.db.refresh(membership)
        logger.info(
            "membership_applied",
            community_id=str(community_id),
            user_id=str(user_id),
            status=membership.status.value,
        )

        await self.cache.invalidate(community_id)

        if not auto_approve:
            await self._dispatch(
                "join_request",
                self.notifier.notify_join_request(community_id, user_id, application_data or {}),
            )

        return membership

    async def approve_member(self, community_id, member_id, approved_by) -> Member:
        community_id = as_uuid(community_id)
        approved_by = as_uuid(approved_by)

        membership = await self._find_membership(community_id, member_id, MemberStatus.PENDING)
        if not membership:
            raise NotFoundError("Pending membership application not found")

        # re-checked here so approvals racing applications cannot overshoot max_members
        community = await self._require_community(community_id, for_update=True)
        await self._ensure_capacity(community)

        now = utcnow()
        membership.status = MemberStatus.APPROVED
        membership.approved_at = now
        membership.approved_by = approved_by
        membership.updated_at = now
        await self.db.commit()

        logger.info("member_approved", community_id=str(community_id), member_id=str(membership.id), approved_by=str(approved_by))
        await self.cache.invalidate(community_id)
        await self._dispatch(
            "membership_approved",
            self.notifier.notify_membership_approved(community_id, membership.user_id, approved_by),
        )
        return membership

    async def reject_member(self, community_id, member_id, rejected_by, reason: str = "") -> Member:
        community_id = as_uuid(community_id)
        rejected_by = as_uuid(rejected_by)

        membership = await self._find_membership(community_id, member_id, MemberStatus.PENDING)
        if not membership:
            raise NotFoundError("Pending membership application not found")

        membership.status = MemberStatus.REJECTED
        membership.updated_at = utcnow()
        await self.db.commit()

        logger.info("member_rejected", community_id=str(community_id), member_id=str(membership.id), rejected_by=str(rejected_by))
        await self.cache.invalidate(community_id)
        await self._dispatch(
            "membership_rejected",
            self.notifier.notify_membership_rejected(community_id, membership.user_id, rejected_by, reason),
        )
        return membership

    async def remove_member(self, community_id, member_id, removed_by) -> Member:
        """Soft-remove an approved member by banning the row"""
        community_id = as_uuid(community_id)

        membership = await self._find_membership(community_id, member_id, MemberStatus.APPROVED)
        if not membership:
            raise NotFoundError("Approved membership not found")

        community = await self._require_community(community_id)
        if community.is_owner(membership.user_id):
            raise ForbiddenError("Cannot remove community owner")

        membership.status = MemberStatus.BANNED
        membership.updated_at = utcnow()
        await self.db.commit()

        logger.info("member_removed", community_id=str(community_id), member_id=str(membership.id), removed_by=str(removed_by))
        await self.cache.invalidate(community_id)
        return membership

    async def change_member_role(self, community_id, member_id, new_role, changed_by) -> Member:
        community_id = as_uuid(community_id)

        membership = await self._find_membership(community_id, member_id, MemberStatus.APPROVED)
        if not membership:
            raise NotFoundError("Approved membership not found")

        role = parse_role(new_role)

        community = await self._require_community(community_id)
        if community.is_owner(membership.user_id):
            raise ForbiddenError("Cannot change community owner role")

        membership.role = role
        membership.updated_at = utcnow()
        await self.db.commit()

        logger.info("member_role_changed", community_id=str(community_id), member_id=str(membership.id), role=role.value, changed_by=str(changed_by))
        await self.cache.invalidate(community_id)
        return membership

    async def update_member_status(self, community_id, member_id, new_status, updated_by) -> Member:
        community_id = as_uuid(community_id)
        updated_by = as_uuid(updated_by)

        membership = await self._find_membership(community_id, member_id)
        if not membership:
            raise NotFoundError("Membership not found")

        status = parse_status(new_status)

        community = await self._require_community(community_id)
        if community.is_owner(membership.user_id):
            raise ForbiddenError("Cannot change community owner status")

        now = utcnow()
        # approval stamps only on pending -> approved; never cleared
        if status == MemberStatus.APPROVED and membership.status == MemberStatus.PENDING:
            membership.approved_at = now
            membership.approved_by = updated_by

        previous = membership.status
        membership.status = status
        membership.updated_at = now
        await self.db.commit()

        logger.info(
            "member_status_updated",
            community_id=str(community_id),
            member_id=str(membership.id),
            previous=previous.value,
            status=status.value,
            updated_by=str(updated_by),
        )
        await self.cache.invalidate(community_id)
        return membership

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_community_members(
        self,
        community_id,
        page: int = 1,
        limit: int = settings.DEFAULT_PAGE_LIMIT,
        status: str = MemberStatus.APPROVED.value,
        role: Optional[str] = None,
        search: Optional[str] = None,
    ) -> dict:
        """Members joined with their user, newest first"""
        status_filter = parse_status(status, allow_all=True)
        conditions = [Member.community_id == as_uuid(community_id)]
        if status_filter is not None:
            conditions.append(Member.status == status_filter)
        if role:
            conditions.append(Member.role == parse_role(role))
        if search:
            conditions.append(User.username.icontains(search, autoescape=True))

        members, pagination = await self._paginate_with_user(
            conditions, (desc(Member.joined_at), desc(Member.id)), page, limit,
        )
        return {"members": members, "pagination": pagination}

    async def get_pending_applications(
        self,
        community_id,
        page: int = 1,
        limit: int = settings.DEFAULT_PAGE_LIMIT,
        search: Optional[str] = None,
    ) -> dict:
        """Pending applications, oldest first (FIFO review queue)"""
        conditions = [
            Member.community_id == as_uuid(community_id),
            Member.status == MemberStatus.PENDING,
        ]
        if search:
            conditions.append(User.username.icontains(search, autoescape=True))

        applications, pagination = await self._paginate_with_user(
            conditions, (asc(Member.joined_at), asc(Member.id)), page, limit,
        )
        return {"applications": applications, "pagination": pagination}

    async def get_user_memberships(
        self,
        user_id,
        page: int = 1,
        limit: int = settings.DEFAULT_PAGE_LIMIT,
        status: str = MemberStatus.APPROVED.value,
        role: Optional[str] = None,
    ) -> dict:
        """A user's memberships joined with their community, newest first"""
        self._check_page(page, limit)
        status_filter = parse_status(status, allow_all=True)
        conditions = [Member.user_id == as_uuid(user_id)]
        if status_filter is not None:
            conditions.append(Member.status == status_filter)
        if role:
            conditions.append(Member.role == parse_role(role))

        count_stmt = select(func.count(Member.id)).where(*conditions)
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(Member)
            .join(Member.community)
            .options(contains_eager(Member.community))
            .where(*conditions)
            .order_by(desc(Member.joined_at), desc(Member.id))
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        memberships = list(result.scalars().all())
        return {"memberships": memberships, "pagination": self._pagination(page, limit, total)}

    async def get_member_status(self, community_id, member_id) -> Member:
        stmt = (
            select(Member)
            .join(Member.user)
            .options(contains_eager(Member.user))
            .where(
                Member.id == as_uuid(member_id),
                Member.community_id == as_uuid(community_id),
            )
        )
        result = await self.db.execute(stmt)
        membership = result.scalars().first()
        if not membership:
            raise NotFoundError("Membership not found")
        return membership

    async def get_membership_history(self, membership_id) -> dict:
        """
        Current membership plus a timeline reconstructed from its timestamps.

        There is no transition log: the timeline is derived from joined_at,
        approved_at and updated_at, so repeated transitions collapse into the
        latest one.
        """
        stmt = (
            select(Member)
            .join(Member.user)
            .join(Member.community)
            .options(contains_eager(Member.user), contains_eager(Member.community))
            .where(Member.id == as_uuid(membership_id))
        )
        result = await self.db.execute(stmt)
        membership = result.scalars().first()
        if not membership:
            raise NotFoundError("Membership not found")

        history = [
            {
                "action": "created",
                "timestamp": membership.joined_at,
                "details": "Membership application submitted",
            }
        ]
        if membership.approved_at:
            history.append({
                "action": "approved",
                "timestamp": membership.approved_at,
                "details": "Membership approved",
            })
        history.append({
            "action": "updated",
            "timestamp": membership.updated_at,
            "details": f"Status changed to {membership.status.value}, role: {membership.role.value}",
        })

        return {"membership": membership, "history": history}

    async def get_member_count(self, community_id, status: str = MemberStatus.APPROVED.value) -> int:
        status_filter = parse_status(status, allow_all=True)
        stmt = select(func.count(Member.id)).where(Member.community_id == as_uuid(community_id))
        if status_filter is not None:
            stmt = stmt.where(Member.status == status_filter)
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _require_community(self, community_id, for_update: bool = False) -> Community:
        community = await self.communities.get_by_id(community_id, for_update=for_update)
        if not community:
            raise NotFoundError("Community not found")
        return community

    async def _ensure_capacity(self, community: Community) -> None:
        if not community.max_members:
            return
        approved = await self.get_member_count(community.id, MemberStatus.APPROVED.value)
        if approved >= community.max_members:
            logger.warning(
                "community_member_limit_reached",
                community_id=str(community.id),
                max_members=community.max_members,
                approved=approved,
            )
            raise ConflictError("Community has reached maximum member limit")

    async def _get_membership(self, community_id, user_id) -> Optional[Member]:
        stmt = select(Member).where(
            Member.community_id == as_uuid(community_id),
            Member.user_id == as_uuid(user_id),
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def _find_membership(self, community_id, member_id, status: Optional[MemberStatus] = None) -> Optional[Member]:
        stmt = select(Member).where(
            Member.id == as_uuid(member_id),
            Member.community_id == as_uuid(community_id),
        )
        if status is not None:
            stmt = stmt.where(Member.status == status)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def _paginate_with_user(self, conditions: list, order: tuple, page: int, limit: int) -> tuple[list, dict]:
        """One page of members joined with their user; `order` must end on a unique column"""
        self._check_page(page, limit)

        count_stmt = (
            select(func.count(Member.id))
            .select_from(Member)
            .join(Member.user)
            .where(*conditions)
        )
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(Member)
            .join(Member.user)
            .options(contains_eager(Member.user))
            .where(*conditions)
            .order_by(*order)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), self._pagination(page, limit, total)

    @staticmethod
    def _check_page(page: int, limit: int) -> None:
        if page < 1:
            raise InvalidArgumentError("Page must be a positive integer")
        if limit < 1:
            raise InvalidArgumentError("Limit must be a positive integer")

    @staticmethod
    def _pagination(page: int, limit: int, total: int) -> dict:
        return {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        }

    @staticmethod
    async def _dispatch(event: str, notification) -> None:
        """Await a notification coroutine; failures are logged and never reach the caller"""
        try:
            await notification
        except Exception:
            logger.error("notification_failed", notification=event, exc_info=True)
