import os

os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set, Tuple
from unittest.mock import AsyncMock

from redis.exceptions import ConnectionError as RedisConnectionError

from cpbot.services.schedule.schedule_store import (
    ScheduleStore,
    SubscriberRegistry,
    TimezoneStore,
)

TEST_PREFIX = "test"


class InMemoryRedis:
    """
    Async stand-in for the subset of redis.asyncio.Redis used by the stores.

    Values are returned decoded, as with decode_responses=True. Setting
    ``fail`` makes every command raise a connection error.
    """

    def __init__(self):
        self.sets: Dict[str, Set[str]] = {}
        self.zsets: Dict[str, Dict[str, float]] = {}
        self.strings: Dict[str, str] = {}
        self.commands: List[str] = []
        self.fail = False
        self.closed = False

    def _call(self, command: str) -> None:
        self.commands.append(command)
        if self.fail:
            raise RedisConnectionError("Connection refused")

    async def ping(self) -> bool:
        self._call("PING")
        return True

    async def sadd(self, key: str, *members: str) -> int:
        self._call("SADD")
        current = self.sets.setdefault(key, set())
        added = len(set(members) - current)
        current.update(members)
        return added

    async def srem(self, key: str, *members: str) -> int:
        self._call("SREM")
        current = self.sets.get(key, set())
        removed = len(current & set(members))
        current.difference_update(members)
        return removed

    async def smembers(self, key: str) -> Set[str]:
        self._call("SMEMBERS")
        return set(self.sets.get(key, set()))

    async def zadd(self, key: str, mapping: Dict[str, float]) -> int:
        self._call("ZADD")
        current = self.zsets.setdefault(key, {})
        added = len(set(mapping) - set(current))
        current.update({member: float(score) for member, score in mapping.items()})
        return added

    async def zrem(self, key: str, *members: str) -> int:
        self._call("ZREM")
        current = self.zsets.get(key, {})
        removed = 0
        for member in members:
            if current.pop(member, None) is not None:
                removed += 1
        return removed

    async def zscore(self, key: str, member: str) -> Optional[float]:
        self._call("ZSCORE")
        return self.zsets.get(key, {}).get(member)

    async def zrangebyscore(
        self,
        key: str,
        min,
        max,
        withscores: bool = False,
        score_cast_func=float,
    ) -> List:
        self._call("ZRANGEBYSCORE")
        low, low_open = _bound(min)
        high, high_open = _bound(max)

        rows: List[Tuple[str, float]] = []
        for member, score in self.zsets.get(key, {}).items():
            if score < low or (low_open and score == low):
                continue
            if score > high or (high_open and score == high):
                continue
            rows.append((member, score))
        rows.sort(key=lambda row: (row[1], row[0]))

        if withscores:
            return [(member, score_cast_func(score)) for member, score in rows]
        return [member for member, _ in rows]

    async def get(self, key: str) -> Optional[str]:
        self._call("GET")
        return self.strings.get(key)

    async def set(self, key: str, value: str) -> bool:
        self._call("SET")
        self.strings[key] = value
        return True

    async def delete(self, *keys: str) -> int:
        self._call("DEL")
        return sum(1 for key in keys if self.strings.pop(key, None) is not None)

    async def aclose(self) -> None:
        self.closed = True


def _bound(value) -> Tuple[float, bool]:
    if isinstance(value, str):
        if value.startswith("("):
            return float(value[1:]), True
        if value in ("-inf", "+inf", "inf"):
            return float(value), False
    return float(value), False


class FakeClock:
    """Settable UTC clock handed to the planner in place of utc_now."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> datetime:
        self.now += delta
        return self.now


@pytest.fixture
def redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def store(redis: InMemoryRedis) -> ScheduleStore:
    return ScheduleStore(redis, prefix=TEST_PREFIX)


@pytest.fixture
def registry(redis: InMemoryRedis) -> SubscriberRegistry:
    return SubscriberRegistry(redis, prefix=TEST_PREFIX)


@pytest.fixture
def timezones(redis: InMemoryRedis) -> TimezoneStore:
    return TimezoneStore(redis, prefix=TEST_PREFIX, default="UTC")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 5, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def notifier() -> AsyncMock:
    mock_notifier = AsyncMock()
    mock_notifier.notify.return_value = True
    return mock_notifier
