"""Redis-backed lock guarding against overlapping follow-up passes."""

from uuid import uuid4

import redis.asyncio as aioredis
import structlog

from remarketing_service.config import Settings

logger = structlog.get_logger()

# Deletes the key only if this holder still owns it
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


async def connect_redis(settings: Settings) -> aioredis.Redis | None:
    """Open a Redis client, or None when Redis is unreachable."""
    client = aioredis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
        retry_on_timeout=True,
    )
    try:
        await client.ping()
    except Exception as e:
        logger.warning("Redis unavailable, pass lock disabled", error=str(e))
        await client.aclose()
        return None
    return client


class BatchLock:
    """SET NX EX lock. No-ops (always acquires) if Redis is unavailable."""

    def __init__(self, client: aioredis.Redis | None, key: str, ttl_seconds: int = 300):
        self.client = client
        self.key = key
        self.ttl_seconds = ttl_seconds
        self.token = uuid4().hex
        self.held = False

    async def acquire(self) -> bool:
        if not self.client:
            self.held = True
            return True
        try:
            self.held = bool(
                await self.client.set(self.key, self.token, nx=True, ex=self.ttl_seconds)
            )
        except Exception as e:
            logger.warning("Lock acquire failed, continuing unlocked", key=self.key, error=str(e))
            self.held = True
        return self.held

    async def release(self) -> None:
        if not self.client or not self.held:
            self.held = False
            return
        try:
            await self.client.eval(_RELEASE_SCRIPT, 1, self.key, self.token)
        except Exception as e:
            logger.warning("Lock release failed", key=self.key, error=str(e))
        finally:
            self.held = False
