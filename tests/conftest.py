from __future__ import annotations

import os

# Settings are read at import time; point them at test values first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-for-pytest-only-" + "x" * 40)
os.environ.setdefault("DEBUG", "false")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from redis.exceptions import ConnectionError as RedisConnectionError  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from agora.core.database import Base, get_session  # noqa: E402
import agora.models  # noqa: E402,F401
from agora.services.membership_service import MembershipService  # noqa: E402
from agora.utils.redis import MembershipCache, get_redis  # noqa: E402


# ---------------------------------------------------------
# In-memory redis stand-in (strings + lists + pipelines)
# ---------------------------------------------------------
class FakePipeline:
    def __init__(self, client: "FakeRedis"):
        self.client = client
        self.ops = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def lpush(self, key, value):
        self.ops.append(("lpush", key, value))
        return self

    def ltrim(self, key, start, end):
        self.ops.append(("ltrim", key, start, end))
        return self

    def expire(self, key, seconds):
        self.ops.append(("expire", key, seconds))
        return self

    async def execute(self):
        results = []
        for name, *args in self.ops:
            results.append(await getattr(self.client, name)(*args))
        self.ops = []
        return results


class FakeRedis:
    def __init__(self):
        self.values: dict[str, str] = {}
        self.lists: dict[str, list] = {}
        self.expiry: dict[str, int] = {}
        self.deleted: list[str] = []
        self.fail = False

    def _check(self):
        if self.fail:
            raise RedisConnectionError("redis unavailable")

    async def get(self, key):
        self._check()
        return self.values.get(key)

    async def set(self, name, value, ex=None):
        self._check()
        self.values[name] = value
        if ex:
            self.expiry[name] = ex
        return True

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            self.deleted.append(key)
            removed += int(self.values.pop(key, None) is not None)
            removed += int(self.lists.pop(key, None) is not None)
        return removed

    async def lpush(self, key, value):
        self._check()
        self.lists.setdefault(key, []).insert(0, value)
        return len(self.lists[key])

    async def ltrim(self, key, start, end):
        self._check()
        items = self.lists.get(key, [])
        self.lists[key] = items[start:end + 1]
        return True

    async def expire(self, key, seconds):
        self._check()
        self.expiry[key] = seconds
        return True

    async def lrange(self, key, start, end):
        self._check()
        items = self.lists.get(key, [])
        return items[start:] if end == -1 else items[start:end + 1]

    def pipeline(self, transaction=True):
        self._check()
        return FakePipeline(self)


class RecordingNotifier:
    """Captures notification calls; `fail` makes every call raise"""

    def __init__(self):
        self.calls = []
        self.fail = False

    async def _record(self, name, *args):
        self.calls.append((name, *args))
        if self.fail:
            raise RuntimeError("notification channel down")

    async def notify_join_request(self, community_id, user_id, application_data=None):
        await self._record("join_request", community_id, user_id, application_data)

    async def notify_membership_approved(self, community_id, user_id, approved_by):
        await self._record("approved", community_id, user_id, approved_by)

    async def notify_membership_rejected(self, community_id, user_id, rejected_by, reason=""):
        await self._record("rejected", community_id, user_id, rejected_by, reason)


# ---------------------------------------------------------
# Database
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture()
async def db(engine):
    sessionmaker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with sessionmaker() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------
# Collaborators
# ---------------------------------------------------------
@pytest.fixture()
def fake_redis():
    return FakeRedis()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def service(db, fake_redis, notifier):
    return MembershipService(db, MembershipCache(fake_redis), notifier)


# ---------------------------------------------------------
# FastAPI app + dependency overrides
# ---------------------------------------------------------
@pytest.fixture()
def app(db, fake_redis):
    from agora.main import app as fastapi_app

    async def _override_get_session():
        yield db

    fastapi_app.dependency_overrides[get_session] = _override_get_session
    fastapi_app.dependency_overrides[get_redis] = lambda: fake_redis
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as ac:
        yield ac
