from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
import redis.asyncio as redis

from agora.core.database import get_session
from agora.services.community_service import CommunityService
from agora.services.membership_service import MembershipService
from agora.services.notification_service import NotificationService
from agora.utils.redis import MembershipCache, get_redis


def get_membership_cache(client: redis.Redis = Depends(get_redis)) -> MembershipCache:
    return MembershipCache(client)


def get_notification_service(
    db: AsyncSession = Depends(get_session),
    client: redis.Redis = Depends(get_redis),
) -> NotificationService:
    return NotificationService(db, client)


def get_membership_service(
    db: AsyncSession = Depends(get_session),
    cache: MembershipCache = Depends(get_membership_cache),
    notifier: NotificationService = Depends(get_notification_service),
) -> MembershipService:
    return MembershipService(db, cache, notifier, CommunityService(db))
