"""
Per-fingerprint usage counters for anonymous visitors, kept in Redis.

This is a soft nudge towards creating an account, not a security boundary:
clearing the fingerprint resets the allowance. When Redis is unreachable
the tracker admits the request and logs a warning.
"""
import hashlib
import logging
from typing import Dict, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..core.config import settings
from ..core.tier_limits import ANONYMOUS_LIMIT, ToolType

logger = logging.getLogger(__name__)

KEY_PREFIX = "anon_usage"


def build_fingerprint(anonymous_id: Optional[str], client_ip: Optional[str], user_agent: Optional[str]) -> str:
    """
    Stable identifier for an anonymous caller.

    Prefers the client-generated ``X-Anonymous-Id``; falls back to a hash of
    IP and user agent.
    """
    if anonymous_id and anonymous_id.strip():
        source = f"id:{anonymous_id.strip()[:128]}"
    else:
        source = f"ip:{client_ip or 'unknown'}|ua:{user_agent or ''}"
    return hashlib.sha256(source.encode("utf-8")).hexdigest()[:32]


class AnonymousUsageTracker:
    """HINCRBY-based counters under ``anon_usage:{fingerprint}``."""

    def __init__(self):
        self.redis_client: Optional[redis.Redis] = None

    async def get_redis(self) -> redis.Redis:
        if self.redis_client is None:
            self.redis_client = redis.from_url(
                settings.redis_url,
                decode_responses=True,
                socket_timeout=settings.redis_timeout_seconds,
                socket_connect_timeout=settings.redis_timeout_seconds,
            )
        return self.redis_client

    @staticmethod
    def _key(fingerprint: str) -> str:
        return f"{KEY_PREFIX}:{fingerprint}"

    @property
    def ttl_seconds(self) -> int:
        return settings.anonymous_usage_ttl_days * 24 * 60 * 60

    async def get_usage(self, fingerprint: str) -> Dict[str, int]:
        """Usage per tool; zeros when Redis is unavailable."""
        usage = {tool.value: 0 for tool in ToolType}
        try:
            client = await self.get_redis()
            stored = await client.hgetall(self._key(fingerprint))
        except (RedisError, OSError) as e:
            logger.warning(f"Anonymous usage lookup failed, treating as unused: {e}")
            return usage

        for tool in ToolType:
            try:
                usage[tool.value] = int(stored.get(tool.value, 0))
            except (TypeError, ValueError):
                usage[tool.value] = 0
        return usage

    async def try_consume(self, fingerprint: str, tool: ToolType) -> Tuple[bool, int]:
        """
        Atomically take one unit of the anonymous allowance.

        Returns ``(admitted, used)``. An increment that lands above the limit
        is rolled back before returning.
        """
        tool = ToolType(tool)
        key = self._key(fingerprint)
        try:
            client = await self.get_redis()
            used = await client.hincrby(key, tool.value, 1)
            if used > ANONYMOUS_LIMIT:
                await client.hincrby(key, tool.value, -1)
                return False, used - 1
            await client.expire(key, self.ttl_seconds)
            return True, used
        except (RedisError, OSError) as e:
            logger.warning(f"Anonymous quota unavailable, admitting {tool.value} request: {e}")
            return True, 0

    async def release(self, fingerprint: str, tool: ToolType) -> None:
        """Return a unit taken by :meth:`try_consume` after a failed action."""
        tool = ToolType(tool)
        key = self._key(fingerprint)
        try:
            client = await self.get_redis()
            used = await client.hincrby(key, tool.value, -1)
            if used < 0:
                await client.hset(key, tool.value, 0)
        except (RedisError, OSError) as e:
            logger.warning(f"Failed to release anonymous {tool.value} usage: {e}")

    async def ping(self) -> bool:
        try:
            client = await self.get_redis()
            return bool(await client.ping())
        except (RedisError, OSError) as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None


# Global tracker instance
anonymous_usage = AnonymousUsageTracker()
