# tests/test_notifications.py
from __future__ import annotations

import uuid

import pytest

from agora.core.config import settings
from agora.core.errors import NotFoundError
from agora.models import MemberRole, MemberStatus
from agora.services.community_service import CommunityService
from agora.services.notification_service import NOTIFICATION_QUEUE, NotificationService
from agora.utils.redis import MembershipCache
from tests.factories import add_member, create_community, create_user


@pytest.mark.asyncio
async def test_join_request_goes_to_owner_and_admins_once(db, fake_redis):
    owner = await create_user(db, "owner")
    admin = await create_user(db, "admin")
    moderator = await create_user(db, "mod")
    applicant = await create_user(db, "alice")
    community = await create_community(db, owner, require_approval=True)
    await add_member(db, community, admin, role=MemberRole.ADMIN)
    await add_member(db, community, moderator, role=MemberRole.MODERATOR)
    await db.commit()

    sent = await NotificationService(db, fake_redis).notify_join_request(community.id, applicant.id, {"message": "hi"})

    assert sorted(n["user_id"] for n in sent) == sorted([str(owner.id), str(admin.id)])
    assert len(fake_redis.lists[NOTIFICATION_QUEUE]) == 2
    assert f"notifications:user:{moderator.id}" not in fake_redis.lists
    assert sent[0]["message"] == f"alice has requested to join {community.name}"


@pytest.mark.asyncio
async def test_notification_payload_shape_and_retention(db, fake_redis):
    user = await create_user(db, "alice")
    await db.commit()
    service = NotificationService(db, fake_redis)

    payload = await service.send_notification(user.id, {
        "type": "membership_approved",
        "title": "Approved",
        "message": "welcome",
        "data": {"community_id": "c1"},
    })

    assert payload["id"].startswith("notif_")
    assert payload["category"] == "membership"
    assert payload["priority"] == "normal"
    assert payload["read"] is False

    key = f"notifications:user:{user.id}"
    assert fake_redis.expiry[key] == settings.NOTIFICATION_TTL_DAYS * 24 * 60 * 60
    assert await service.get_user_notifications(user.id) == [payload]


@pytest.mark.asyncio
async def test_user_history_is_newest_first(db, fake_redis):
    user = await create_user(db, "alice")
    await db.commit()
    service = NotificationService(db, fake_redis)

    for i in range(3):
        await service.send_notification(user.id, {"type": "t", "title": "t", "message": f"m{i}"})

    latest = await service.get_user_notifications(user.id, limit=2)
    assert [n["message"] for n in latest] == ["m2", "m1"]


@pytest.mark.asyncio
async def test_approved_notification_falls_back_to_admin_name(db, fake_redis):
    owner = await create_user(db, "owner")
    member_user = await create_user(db, "alice")
    community = await create_community(db, owner)
    await db.commit()

    payload = await NotificationService(db, fake_redis).notify_membership_approved(
        community.id, member_user.id, uuid.uuid4(),
    )

    assert payload["data"]["approved_by"] == "Admin"
    assert payload["message"] == f"Your request to join {community.name} has been approved!"


@pytest.mark.asyncio
async def test_rejected_notification_for_unknown_user(db, fake_redis):
    owner = await create_user(db, "owner")
    community = await create_community(db, owner)
    await db.commit()

    with pytest.raises(NotFoundError):
        await NotificationService(db, fake_redis).notify_membership_rejected(
            community.id, uuid.uuid4(), owner.id, "no",
        )


@pytest.mark.asyncio
async def test_store_failure_is_swallowed(db, fake_redis):
    user = await create_user(db, "alice")
    await db.commit()
    fake_redis.fail = True

    payload = await NotificationService(db, fake_redis).send_notification(
        user.id, {"type": "t", "title": "t", "message": "m"},
    )

    assert payload["user_id"] == str(user.id)
    assert fake_redis.lists == {}


@pytest.mark.asyncio
async def test_cache_invalidation_drops_every_view(fake_redis):
    community_id = uuid.uuid4()
    for key in MembershipCache.keys_for(community_id):
        await fake_redis.set(key, "cached")

    await MembershipCache(fake_redis).invalidate(community_id)

    assert fake_redis.values == {}
    assert fake_redis.deleted == [
        f"community:{community_id}:members",
        f"community:{community_id}:pending",
        f"community:{community_id}:member_count",
    ]


@pytest.mark.asyncio
async def test_pending_member_is_not_an_admin_recipient(db, fake_redis):
    owner = await create_user(db, "owner")
    pending_admin = await create_user(db, "pending_admin")
    community = await create_community(db, owner)
    await add_member(db, community, pending_admin, role=MemberRole.ADMIN, status=MemberStatus.PENDING)
    await db.commit()

    assert await CommunityService(db).get_admin_user_ids(community) == [owner.id]
