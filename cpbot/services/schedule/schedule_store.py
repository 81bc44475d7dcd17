"""
Redis-backed persistence for daily reminders.

Layout, namespaced by a deployment-chosen prefix:
    <prefix>:users                 set of subscriber ids
    <prefix>:daily                 sorted set, subscriber -> canonical second of day
    <prefix>:timezone:<subscriber> timezone name
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional, Set

from redis.asyncio import Redis
from redis.exceptions import RedisError

from cpbot.config.settings import settings
from cpbot.services.schedule.time_of_day import load_timezone
from cpbot.utils.datetime_utils import SECONDS_PER_DAY
from cpbot.utils.errors import BackendError, NotSetError
from cpbot.utils.logging import get_logger

logger = get_logger()


@dataclass(frozen=True)
class ScheduleEntry:
    subscriber_id: str
    second: int


@dataclass(frozen=True)
class RedisKeys:
    prefix: str

    @property
    def users(self) -> str:
        return f"{self.prefix}:users"

    @property
    def daily(self) -> str:
        return f"{self.prefix}:daily"

    def timezone(self, subscriber_id: str) -> str:
        return f"{self.prefix}:timezone:{subscriber_id}"


@contextmanager
def _redis_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except RedisError as e:
        logger.error(f"Redis {operation} failed: {str(e)}")
        raise BackendError(f"Redis {operation} failed") from e


class ScheduleStore:
    """Subscriber -> canonical second of day, with range scans over the second."""

    def __init__(self, redis: Redis, prefix: str = settings.REDIS_KEY_PREFIX):
        self.redis = redis
        self.keys = RedisKeys(prefix)

    async def upsert(self, subscriber_id: str, second: int) -> None:
        """Set the subscriber's daily second, replacing any previous value"""
        if not 0 <= second < SECONDS_PER_DAY:
            raise ValueError(f"second of day out of range: {second}")
        with _redis_errors("ZADD"):
            await self.redis.zadd(self.keys.daily, {subscriber_id: second})

    async def remove(self, subscriber_id: str) -> None:
        """Remove the subscriber's daily second; absent subscribers are ignored"""
        with _redis_errors("ZREM"):
            await self.redis.zrem(self.keys.daily, subscriber_id)

    async def get(self, subscriber_id: str) -> int:
        """
        Get the subscriber's daily second.

        Raises:
            NotSetError: the subscriber has no daily schedule
        """
        with _redis_errors("ZSCORE"):
            score = await self.redis.zscore(self.keys.daily, subscriber_id)
        if score is None:
            raise NotSetError(subscriber_id)
        return int(score)

    async def range_query(self, from_second: int, to_second: int) -> List[ScheduleEntry]:
        """
        All entries with ``from_second <= second < to_second``.

        The range never wraps; callers split a window crossing midnight into
        two queries. Result order is not significant.
        """
        if not 0 <= from_second < to_second <= SECONDS_PER_DAY:
            raise ValueError(
                f"invalid second-of-day range [{from_second}, {to_second})"
            )
        with _redis_errors("ZRANGEBYSCORE"):
            rows = await self.redis.zrangebyscore(
                self.keys.daily,
                from_second,
                f"({to_second}",
                withscores=True,
                score_cast_func=int,
            )
        return [ScheduleEntry(str(member), int(score)) for member, score in rows]


class SubscriberRegistry:
    """Everyone who followed the bot or invited it into a group/room."""

    def __init__(self, redis: Redis, prefix: str = settings.REDIS_KEY_PREFIX):
        self.redis = redis
        self.keys = RedisKeys(prefix)

    async def add(self, subscriber_id: str) -> None:
        with _redis_errors("SADD"):
            await self.redis.sadd(self.keys.users, subscriber_id)

    async def remove(self, subscriber_id: str) -> None:
        with _redis_errors("SREM"):
            await self.redis.srem(self.keys.users, subscriber_id)

    async def members(self) -> Set[str]:
        with _redis_errors("SMEMBERS"):
            members = await self.redis.smembers(self.keys.users)
        return {str(member) for member in members}


class TimezoneStore:
    """Per-subscriber timezone name, falling back to the deployment default."""

    def __init__(
        self,
        redis: Redis,
        prefix: str = settings.REDIS_KEY_PREFIX,
        default: str = settings.DEFAULT_TIMEZONE,
    ):
        self.redis = redis
        self.keys = RedisKeys(prefix)
        self.default = default

    async def get(self, subscriber_id: str) -> str:
        with _redis_errors("GET"):
            name: Optional[str] = await self.redis.get(self.keys.timezone(subscriber_id))
        return name or self.default

    async def set(self, subscriber_id: str, name: str) -> str:
        """Validate and store a timezone name; returns the stored (stripped) name"""
        name = name.strip()
        load_timezone(name)
        with _redis_errors("SET"):
            await self.redis.set(self.keys.timezone(subscriber_id), name)
        return name

    async def clear(self, subscriber_id: str) -> None:
        with _redis_errors("DEL"):
            await self.redis.delete(self.keys.timezone(subscriber_id))
