# tests/test_auth.py
from __future__ import annotations

import uuid

import jwt
import pytest

from agora.core.config import settings
from agora.core.token import create_access_token, create_refresh_token
from agora.utils.redis import JTI_EXPIRY_SECONDS, add_jti_to_blacklist
from tests.factories import auth_headers, create_user


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_me_returns_caller(client, db):
    user = await create_user(db, "alice")
    await db.commit()

    res = await client.get("/users/me", headers=auth_headers(user))
    assert res.status_code == 200
    assert res.json()["data"]["username"] == "alice"
    assert "X-Request-ID" in res.headers


@pytest.mark.asyncio
async def test_revoked_token_is_refused(client, db, fake_redis):
    user = await create_user(db, "alice")
    await db.commit()
    token = create_access_token(str(user.id), user.username)
    jti = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])["jti"]

    await add_jti_to_blacklist(fake_redis, jti)

    assert fake_redis.expiry[jti] == JTI_EXPIRY_SECONDS
    res = await client.get("/users/me", headers=bearer(token))
    assert res.status_code == 403
    assert res.json()["error"] == "Token revoked"


@pytest.mark.asyncio
async def test_refresh_token_is_not_an_access_token(client, db):
    user = await create_user(db, "alice")
    await db.commit()

    res = await client.get("/users/me", headers=bearer(create_refresh_token(str(user.id))))
    assert res.status_code == 403
    assert res.json()["error"] == "Refresh token not allowed"


@pytest.mark.asyncio
async def test_expired_and_garbage_tokens(client, db):
    user = await create_user(db, "alice")
    await db.commit()

    expired = create_access_token(str(user.id), expires_in_min=-1)
    res = await client.get("/users/me", headers=bearer(expired))
    assert res.status_code == 401
    assert res.json()["error"] == "Token has expired"

    res = await client.get("/users/me", headers=bearer("not.a.jwt"))
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_token_for_unknown_user(client):
    res = await client.get("/users/me", headers=bearer(create_access_token(str(uuid.uuid4()))))
    assert res.status_code == 404
    assert res.json()["error"] == "User not found"


@pytest.mark.asyncio
async def test_health(client):
    res = await client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"success": True, "data": {"status": "ok"}}


@pytest.mark.asyncio
async def test_request_id_is_echoed_or_generated(client):
    res = await client.get("/health", headers={"X-Request-ID": "trace-123"})
    assert res.headers["X-Request-ID"] == "trace-123"

    res = await client.get("/health")
    assert len(res.headers["X-Request-ID"]) == 32
