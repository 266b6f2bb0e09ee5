import json
import secrets
import time
from datetime import datetime, timezone
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agora.core.config import settings
from agora.core.errors import NotFoundError
from agora.core.logger import logger
from agora.models.user import User
from agora.services.community_service import CommunityService
from agora.utils.ids import as_uuid

NOTIFICATION_QUEUE = "notifications:queue"


def user_notifications_key(user_id) -> str:
    return f"notifications:user:{user_id}"


class NotificationService:
    """
    Builds membership notifications and stores them in redis.

    Every notification is pushed onto the shared processing queue and onto the
    recipient's history list (newest first, capped and expiring). Delivery to
    email/push/websocket channels happens downstream of the queue.
    """

    def __init__(self, db: AsyncSession, client: redis.Redis):
        self.db = db
        self.client = client
        self.communities = CommunityService(db)

    async def notify_join_request(self, community_id, user_id, application_data: Optional[dict] = None) -> list[dict]:
        """Tell every community admin that a user asked to join"""
        community = await self.communities.get_by_id(community_id)
        if not community:
            raise NotFoundError("Community not found")

        user = await self._get_user(user_id)
        if not user:
            raise NotFoundError("User not found")

        notification = {
            "type": "join_request",
            "title": "New Community Join Request",
            "message": f"{user.username or user.wallet_address} has requested to join {community.name}",
            "priority": "high",
            "data": {
                "community_id": str(community.id),
                "community_name": community.name,
                "user_id": str(user.id),
                "username": user.username,
                "wallet_address": user.wallet_address,
                "application_data": application_data or {},
                "action_url": f"/admin/communities/{community.id}/members/pending",
            },
        }

        admin_ids = await self.communities.get_admin_user_ids(community)
        sent = []
        for admin_id in admin_ids:
            sent.append(await self.send_notification(admin_id, notification))

        logger.info("join_request_notified", community_id=str(community.id), user_id=str(user.id), recipients=len(sent))
        return sent

    async def notify_membership_approved(self, community_id, user_id, approved_by) -> dict:
        community = await self.communities.get_by_id(community_id)
        user = await self._get_user(user_id)
        if not community or not user:
            raise NotFoundError("Community or user not found")

        approver = await self._get_user(approved_by)
        notification = {
            "type": "membership_approved",
            "title": "Community Membership Approved",
            "message": f"Your request to join {community.name} has been approved!",
            "priority": "normal",
            "data": {
                "community_id": str(community.id),
                "community_name": community.name,
                "approved_by": approver.username if approver else "Admin",
                "action_url": f"/communities/{community.id}",
            },
        }
        return await self.send_notification(user.id, notification)

    async def notify_membership_rejected(self, community_id, user_id, rejected_by, reason: str = "") -> dict:
        community = await self.communities.get_by_id(community_id)
        user = await self._get_user(user_id)
        if not community or not user:
            raise NotFoundError("Community or user not found")

        rejecter = await self._get_user(rejected_by)
        notification = {
            "type": "membership_rejected",
            "title": "Community Membership Application",
            "message": f"Your request to join {community.name} was not approved at this time.",
            "priority": "normal",
            "data": {
                "community_id": str(community.id),
                "community_name": community.name,
                "rejected_by": rejecter.username if rejecter else "Admin",
                "reason": reason,
                "action_url": f"/communities/{community.id}",
            },
        }
        return await self.send_notification(user.id, notification)

    async def send_notification(self, user_id, notification: dict) -> dict:
        payload = {
            "id": f"notif_{int(time.time() * 1000)}_{secrets.token_hex(5)}",
            "user_id": str(user_id),
            "type": notification["type"],
            "title": notification["title"],
            "message": notification["message"],
            "category": "membership",
            "priority": notification.get("priority", "normal"),
            "data": notification.get("data", {}),
            "created_at": datetime.now(timezone.utc).isoformat(),
            "read": False,
        }
        await self._store(payload)
        return payload

    async def get_user_notifications(self, user_id, limit: int = 50) -> list[dict]:
        raw = await self.client.lrange(user_notifications_key(user_id), 0, limit - 1)
        return [json.loads(item) for item in raw]

    async def _store(self, payload: dict) -> None:
        encoded = json.dumps(payload)
        key = user_notifications_key(payload["user_id"])
        try:
            async with self.client.pipeline(transaction=False) as pipe:
                pipe.lpush(NOTIFICATION_QUEUE, encoded)
                pipe.lpush(key, encoded)
                pipe.ltrim(key, 0, settings.NOTIFICATION_HISTORY_LIMIT - 1)
                pipe.expire(key, settings.notification_ttl_seconds)
                await pipe.execute()
        except RedisError:
            logger.warning("notification_store_failed", notification_id=payload["id"], user_id=payload["user_id"], exc_info=True)

    async def _get_user(self, user_id) -> Optional[User]:
        stmt = select(User).where(User.id == as_uuid(user_id))
        result = await self.db.execute(stmt)
        return result.scalars().first()
