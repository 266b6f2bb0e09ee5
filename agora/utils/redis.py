import redis.asyncio as redis
from redis.exceptions import RedisError

from agora.core.config import settings
from agora.core.logger import logger

JTI_EXPIRY_SECONDS = 3600

redis_client = redis.Redis(
    host=settings.REDIS_HOST,
    port=settings.REDIS_PORT,
    db=settings.REDIS_DB,
    decode_responses=True
)


def get_redis() -> redis.Redis:
    return redis_client


async def add_jti_to_blacklist(client: redis.Redis, jti: str) -> None:
    await client.set(
        name=jti,
        value="",
        ex=JTI_EXPIRY_SECONDS
    )


async def token_in_blacklist(client: redis.Redis, jti: str) -> bool:
    exists = await client.get(jti)
    return exists is not None


class MembershipCache:
    """Cached membership views for a community, keyed `community:{id}:<view>`."""

    VIEWS = ("members", "pending", "member_count")

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def keys_for(cls, community_id) -> list[str]:
        return [f"community:{community_id}:{view}" for view in cls.VIEWS]

    async def invalidate(self, community_id) -> None:
        """Drop every cached membership view of a community. Never raises."""
        keys = self.keys_for(community_id)
        try:
            await self.client.delete(*keys)
        except RedisError:
            logger.warning("membership_cache_invalidation_failed", community_id=str(community_id), exc_info=True)
