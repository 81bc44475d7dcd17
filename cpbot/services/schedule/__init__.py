"""Daily reminder scheduling: time-of-day codec, Redis stores, planner, live updates."""

from .coordinator import DailyScheduleCoordinator, ScheduleView
from .planner import (
    ActionState,
    DailyReminderPlanner,
    DeferredAction,
    Generation,
    Notifier,
    PlannerState,
)
from .schedule_store import ScheduleEntry, ScheduleStore, SubscriberRegistry, TimezoneStore
from .time_of_day import (
    format_time_of_day,
    load_timezone,
    next_occurrence,
    parse_time_of_day,
    seconds_of_day,
)

__all__ = [
    "ActionState",
    "DailyReminderPlanner",
    "DailyScheduleCoordinator",
    "DeferredAction",
    "Generation",
    "Notifier",
    "PlannerState",
    "ScheduleEntry",
    "ScheduleStore",
    "ScheduleView",
    "SubscriberRegistry",
    "TimezoneStore",
    "format_time_of_day",
    "load_timezone",
    "next_occurrence",
    "parse_time_of_day",
    "seconds_of_day",
]
