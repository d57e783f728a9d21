import json
import logging
import redis.asyncio as redis

from messenger.core.config import REDIS_URL

logger = logging.getLogger(__name__)

# Connection Pool (Reusable)
pool = redis.ConnectionPool.from_url(REDIS_URL, decode_responses=True)


def conversation_channel(conversation_id: int) -> str:
    return f"conversation:{conversation_id}"


def user_channel(user_id: int) -> str:
    return f"user:{user_id}"


class RedisManager:
    @staticmethod
    def get_client() -> redis.Redis:
        """
        Returns an async Redis client from the global connection pool.
        """
        return redis.Redis(connection_pool=pool)

    @staticmethod
    async def publish_event(channel: str, payload: dict) -> bool:
        """
        Publishes a change notification. Best-effort: a Redis failure is logged
        and reported as False, never raised to the committed mutation.
        """
        client = RedisManager.get_client()
        try:
            await client.publish(channel, json.dumps(payload, default=str))
            return True
        except redis.RedisError as e:
            logger.warning(f"[RedisManager] publish to {channel} failed: {e}")
            return False

    @staticmethod
    async def close():
        await pool.disconnect()
