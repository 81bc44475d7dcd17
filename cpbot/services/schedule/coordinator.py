"""
Live updates to daily schedules.

A change is persisted first. If the planner has a live generation, the change
is reflected in it right away: the subscriber's current timer is dropped and,
when the new time still falls inside the running window, a fresh timer is
armed. Otherwise the next planning cycle picks the change up from the store.
"""

from dataclasses import dataclass
from datetime import tzinfo
from typing import Optional

from cpbot.services.schedule.planner import DailyReminderPlanner, DeferredAction
from cpbot.services.schedule.schedule_store import ScheduleStore, TimezoneStore
from cpbot.services.schedule.time_of_day import (
    format_time_of_day,
    load_timezone,
    parse_time_of_day,
)
from cpbot.utils.errors import InvalidTimezoneError, NotSetError
from cpbot.utils.logging import get_logger

logger = get_logger()


@dataclass(frozen=True)
class ScheduleView:
    subscriber_id: str
    second: int
    time: str
    timezone: str


class DailyScheduleCoordinator:
    """set/clear/get of a subscriber's daily reminder, consistent with the planner."""

    def __init__(
        self,
        store: ScheduleStore,
        timezones: TimezoneStore,
        planner: DailyReminderPlanner,
    ):
        self.store = store
        self.timezones = timezones
        self.planner = planner

    async def set_schedule(self, subscriber_id: str, second: int) -> Optional[DeferredAction]:
        """
        Persist the subscriber's canonical second and re-arm the live timer.

        Returns the newly armed action when the change landed in the running
        window, otherwise None.
        """
        async with self.planner.lock:
            action = await self._apply(subscriber_id, second)
        self._log_armed(subscriber_id, action)
        return action

    async def set_schedule_text(self, subscriber_id: str, text: str) -> int:
        """Parse ``text`` in the subscriber's timezone and apply it; returns the canonical second"""
        tz = load_timezone(await self.timezones.get(subscriber_id))
        second = parse_time_of_day(text, tz)
        await self.set_schedule(subscriber_id, second)
        return second

    async def set_schedule_in(self, subscriber_id: str, text: str, tz_name: str) -> int:
        """
        Store ``tz_name`` as the subscriber's timezone and apply ``text`` read in it.

        Both are validated before anything is written.

        Raises:
            InvalidTimezoneError: unknown timezone
            InvalidTimeError: malformed or out of range time
        """
        tz_name = tz_name.strip()
        second = parse_time_of_day(text, load_timezone(tz_name))
        async with self.planner.lock:
            await self.timezones.set(subscriber_id, tz_name)
            action = await self._apply(subscriber_id, second)
        self._log_armed(subscriber_id, action)
        return second

    async def set_timezone(self, subscriber_id: str, name: str) -> str:
        """
        Change the subscriber's timezone, keeping their daily wall-clock time.

        Returns the stored timezone name.
        """
        new_tz = load_timezone(name.strip())
        action = None
        async with self.planner.lock:
            old_tz = await self._resolve_timezone(subscriber_id)
            try:
                second = await self.store.get(subscriber_id)
            except NotSetError:
                second = None

            stored = await self.timezones.set(subscriber_id, name)
            if second is not None:
                moved = parse_time_of_day(format_time_of_day(second, old_tz), new_tz)
                if moved != second:
                    action = await self._apply(subscriber_id, moved)
                    logger.info(
                        f"[DAILY] Schedule for [{subscriber_id}] moved to second {moved} ({stored})"
                    )
        self._log_armed(subscriber_id, action)
        return stored

    async def clear_schedule(self, subscriber_id: str) -> bool:
        """Remove the schedule; returns True if a live timer was canceled"""
        async with self.planner.lock:
            await self.store.remove(subscriber_id)
            if self.planner.generation is None:
                return False
            canceled = self.planner.cancel_live_action(subscriber_id)

        if canceled:
            logger.info(f"[DAILY] Live reminder for [{subscriber_id}] canceled")
        return canceled

    async def get_schedule(self, subscriber_id: str) -> str:
        """
        The subscriber's daily time rendered in their timezone.

        Raises:
            NotSetError: no daily schedule
        """
        return (await self.describe(subscriber_id)).time

    async def describe(self, subscriber_id: str) -> ScheduleView:
        second = await self.store.get(subscriber_id)
        tz_name = await self.timezones.get(subscriber_id)
        return ScheduleView(
            subscriber_id=subscriber_id,
            second=second,
            time=format_time_of_day(second, load_timezone(tz_name)),
            timezone=tz_name,
        )

    async def _apply(self, subscriber_id: str, second: int) -> Optional[DeferredAction]:
        # Caller holds the planner lock
        await self.store.upsert(subscriber_id, second)
        if self.planner.generation is None:
            return None
        return self.planner.replace_live_action(subscriber_id, second, self.planner.clock())

    async def _resolve_timezone(self, subscriber_id: str) -> tzinfo:
        name = await self.timezones.get(subscriber_id)
        try:
            return load_timezone(name)
        except InvalidTimezoneError:
            logger.warning(
                f"[DAILY] Stored timezone {name} for [{subscriber_id}] is invalid, "
                f"using {self.timezones.default}"
            )
            return load_timezone(self.timezones.default)

    @staticmethod
    def _log_armed(subscriber_id: str, action: Optional[DeferredAction]) -> None:
        if action is not None:
            logger.info(
                f"[DAILY] Live reminder for [{subscriber_id}] armed at {action.fire_at.isoformat()}"
            )
