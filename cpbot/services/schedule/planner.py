"""
Daily reminder planner.

Every ``period`` the planner asks the schedule store which subscribers are due
before the next tick and arms one asyncio task per subscriber that sleeps until
the exact instant. The set of armed tasks is a Generation; a new planning cycle
replaces the previous one.

All reads and writes of the current generation happen under ``self.lock``.
Firing and cancellation are decided under that lock through the action's
explicit state, so an action either fires or is canceled, never both. The
notification itself is sent outside the lock.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Set, Tuple

from cpbot.services.schedule.schedule_store import (
    ScheduleEntry,
    ScheduleStore,
    TimezoneStore,
)
from cpbot.services.schedule.time_of_day import load_timezone, next_occurrence
from cpbot.utils.context import bound_request_id
from cpbot.utils.datetime_utils import (
    SECONDS_PER_DAY,
    seconds_since_utc_midnight,
    utc_now,
)
from cpbot.utils.errors import AlreadyStartedError, BackendError, InvalidTimezoneError
from cpbot.utils.logging import get_logger

logger = get_logger()

SHUTDOWN_GRACE_SECONDS = 10.0


class PlannerState(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    ACTIVE = "active"


class ActionState(str, Enum):
    PENDING = "pending"
    FIRED = "fired"
    CANCELED = "canceled"


class Notifier(Protocol):
    async def notify(self, subscriber_id: str, tz: tzinfo) -> bool: ...


@dataclass(eq=False)
class DeferredAction:
    subscriber_id: str
    fire_at: datetime
    state: ActionState = ActionState.PENDING
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def pending(self) -> bool:
        return self.state is ActionState.PENDING

    def cancel(self) -> bool:
        """Pending -> Canceled. Caller must hold the planner lock."""
        if not self.pending:
            return False
        self.state = ActionState.CANCELED
        if self.task is not None:
            self.task.cancel()
        return True


@dataclass
class Generation:
    window_start: datetime
    window_end: datetime
    actions: Dict[str, DeferredAction] = field(default_factory=dict)

    def covers(self, instant: datetime) -> bool:
        return instant < self.window_end

    @property
    def subscriber_ids(self) -> List[str]:
        return sorted(self.actions)


def second_ranges(window_start: datetime, window_end: datetime) -> List[Tuple[int, int]]:
    """
    Split an absolute window into half-open second-of-day ranges.

    Only whole seconds can carry a schedule, so both bounds are rounded up.
    A window crossing UTC midnight gives two ranges; a window of a day or more
    gives the whole day.
    """
    if window_end <= window_start:
        return []
    if window_end - window_start >= timedelta(days=1):
        return [(0, SECONDS_PER_DAY)]

    low = _ceil_second(window_start)
    high = _ceil_second(window_end)
    if low < high:
        return [(low, high)]
    if low == high:
        # Either no whole second inside the window, or (almost) a full day
        if window_end - window_start < timedelta(seconds=1):
            return []
        return [(0, SECONDS_PER_DAY)]

    ranges = [(low, SECONDS_PER_DAY)]
    if high > 0:
        ranges.append((0, high))
    return ranges


def _ceil_second(instant: datetime) -> int:
    elapsed = seconds_since_utc_midnight(instant)
    whole = int(elapsed)
    if elapsed > whole:
        whole += 1
    return whole % SECONDS_PER_DAY


class DailyReminderPlanner:
    """Keeps one live timer per subscriber due within the current window."""

    def __init__(
        self,
        store: ScheduleStore,
        timezones: TimezoneStore,
        notifier: Notifier,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.timezones = timezones
        self.notifier = notifier
        self.clock = clock
        self.lock = asyncio.Lock()

        self._state = PlannerState.IDLE
        self._generation: Optional[Generation] = None
        self._period: Optional[timedelta] = None
        self._ticker: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def state(self) -> PlannerState:
        return self._state

    @property
    def started(self) -> bool:
        return self._period is not None

    @property
    def period(self) -> Optional[timedelta]:
        return self._period

    @property
    def generation(self) -> Optional[Generation]:
        return self._generation

    def live_action(self, subscriber_id: str) -> Optional[DeferredAction]:
        if self._generation is None:
            return None
        return self._generation.actions.get(subscriber_id)

    async def start(self, period: timedelta) -> None:
        """
        Run one planning cycle now, then one every ``period``.

        Raises:
            AlreadyStartedError: the planner is already running
        """
        if self.started:
            raise AlreadyStartedError()
        if period <= timedelta(0):
            raise ValueError("planner period must be positive")

        self._period = period
        logger.info(f"[DAILY] Starting planner with period {period}")
        try:
            await self.run_cycle()
        except BaseException:
            self._period = None
            raise
        self._ticker = asyncio.create_task(self._tick_loop(), name="daily-planner")

    async def stop(self, grace: float = SHUTDOWN_GRACE_SECONDS) -> None:
        """
        Stop ticking and cancel every pending action.

        Reminders already being sent get up to ``grace`` seconds to finish;
        whatever is still running after that is canceled.
        """
        if self._ticker is not None:
            self._ticker.cancel()
            try:
                await self._ticker
            except asyncio.CancelledError:
                pass
            self._ticker = None

        canceled = 0
        async with self.lock:
            if self._generation is not None:
                for action in self._generation.actions.values():
                    if action.cancel():
                        canceled += 1
            self._generation = None
            self._period = None
            self._state = PlannerState.IDLE

        if self._tasks:
            _, still_running = await asyncio.wait(set(self._tasks), timeout=grace)
            if still_running:
                logger.warning(
                    f"[DAILY] {len(still_running)} reminders still sending after {grace}s, canceling"
                )
                for task in still_running:
                    task.cancel()
                await asyncio.gather(*still_running, return_exceptions=True)
        logger.info(f"[DAILY] Planner stopped, {canceled} pending reminders canceled")

    async def run_cycle(self) -> bool:
        """
        Plan the next window and replace the current generation.

        Returns False when the store could not be read; the previous generation
        then stays live and the next tick tries again.
        """
        if self._period is None:
            raise RuntimeError("planner has not been started")

        async with self.lock:
            previous_state = self._state
            self._state = PlannerState.PLANNING
            now = self.clock()
            try:
                generation = await self._plan(now)
            except BackendError as e:
                self._state = previous_state
                logger.warning(f"[DAILY] Planning cycle abandoned: {e.message}")
                return False
            except BaseException:
                self._state = previous_state
                raise

            self._install(generation, now)
            self._state = PlannerState.ACTIVE

        logger.info(
            f"[DAILY] Window [{generation.window_start.isoformat()}, "
            f"{generation.window_end.isoformat()}) scheduled for: {generation.subscriber_ids}"
        )
        return True

    def replace_live_action(
        self, subscriber_id: str, second: int, now: datetime
    ) -> Optional[DeferredAction]:
        """
        Re-arm ``subscriber_id`` in the live generation.

        Any live action for the subscriber is canceled. A new one is armed only
        if its next occurrence falls before the current window ends. Caller
        must hold ``self.lock``.
        """
        self._require_lock()
        if self._generation is None:
            return None

        self._cancel_live(subscriber_id)
        fire_at = next_occurrence(second, now)
        if not self._generation.covers(fire_at):
            return None

        action = DeferredAction(subscriber_id, fire_at)
        self._generation.actions[subscriber_id] = action
        self._arm(action)
        return action

    def cancel_live_action(self, subscriber_id: str) -> bool:
        """Cancel the subscriber's live action, if any. Caller must hold ``self.lock``."""
        self._require_lock()
        return self._cancel_live(subscriber_id)

    async def _tick_loop(self) -> None:
        loop = asyncio.get_running_loop()
        period_seconds = self._period.total_seconds()
        next_tick = loop.time() + period_seconds
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            next_tick += period_seconds
            try:
                await self.run_cycle()
            except Exception as e:
                logger.opt(exception=e).error(f"[DAILY] Planning cycle failed: {str(e)}")

    async def _plan(self, now: datetime) -> Generation:
        window_end = now + self._period
        window_start = now
        previous = self._generation
        if previous is not None and now - self._period <= previous.window_end <= now:
            # Continue exactly where the last window stopped
            window_start = previous.window_end

        entries: List[ScheduleEntry] = []
        for low, high in second_ranges(window_start, window_end):
            entries.extend(await self.store.range_query(low, high))

        generation = Generation(window_start=window_start, window_end=window_end)
        for entry in entries:
            fire_at = next_occurrence(entry.second, window_start, inclusive=True)
            if not generation.covers(fire_at):
                continue
            generation.actions[entry.subscriber_id] = DeferredAction(
                entry.subscriber_id, fire_at
            )
        return generation

    def _install(self, generation: Generation, now: datetime) -> None:
        previous = self._generation
        if previous is not None:
            for subscriber_id, action in previous.actions.items():
                if not action.pending:
                    continue
                if action.fire_at <= now and subscriber_id not in generation.actions:
                    # Already due, its task is about to take the lock
                    generation.actions[subscriber_id] = action
                else:
                    action.cancel()

        for action in generation.actions.values():
            if action.task is None:
                self._arm(action)
        self._generation = generation

    def _arm(self, action: DeferredAction) -> None:
        task = asyncio.create_task(
            self._run_action(action), name=f"daily-reminder:{action.subscriber_id}"
        )
        action.task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _cancel_live(self, subscriber_id: str) -> bool:
        if self._generation is None:
            return False
        action = self._generation.actions.pop(subscriber_id, None)
        if action is None:
            return False
        return action.cancel()

    def _require_lock(self) -> None:
        if not self.lock.locked():
            raise RuntimeError("planner lock must be held")

    async def _run_action(self, action: DeferredAction) -> None:
        delay = (action.fire_at - self.clock()).total_seconds()
        if delay > 0:
            await asyncio.sleep(delay)

        async with self.lock:
            if not action.pending:
                return
            action.state = ActionState.FIRED
            if self._generation is not None:
                if self._generation.actions.get(action.subscriber_id) is action:
                    del self._generation.actions[action.subscriber_id]

        with bound_request_id(f"daily:{action.subscriber_id}"):
            await self._notify(action)

    async def _notify(self, action: DeferredAction) -> None:
        subscriber_id = action.subscriber_id
        try:
            tz = load_timezone(await self.timezones.get(subscriber_id))
        except (BackendError, InvalidTimezoneError) as e:
            logger.warning(
                f"[DAILY] Falling back to {self.timezones.default} for {subscriber_id}: {str(e)}"
            )
            tz = load_timezone(self.timezones.default)

        try:
            delivered = await self.notifier.notify(subscriber_id, tz)
        except Exception as e:
            logger.opt(exception=e).error(
                f"[DAILY] Error sending reminder to [{subscriber_id}]: {str(e)}"
            )
            return

        if delivered:
            logger.info(f"[DAILY] Reminder sent to [{subscriber_id}]")
        else:
            logger.warning(f"[DAILY] Reminder to [{subscriber_id}] was not delivered")
