from redis.asyncio import Redis
from redis.exceptions import RedisError

from cpbot.config.settings import settings
from cpbot.utils.logging import get_logger

logger = get_logger()


def create_redis_client() -> Redis:
    """Create the async Redis client shared by every store."""
    return Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=settings.REDIS_DB,
        password=settings.REDIS_PASSWORD or None,
        decode_responses=True,
        socket_connect_timeout=5,
    )


async def check_redis_connection(client: Redis) -> bool:
    """Check if Redis server is accessible"""
    try:
        await client.ping()
        logger.info("Redis connection successful")
        return True
    except RedisError as e:
        logger.error(f"Redis connection failed: {e}")
        logger.error("Please ensure Redis server is running")
        return False
