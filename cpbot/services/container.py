"""Long-lived services shared by the HTTP layer and the daily planner."""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Request
from redis.asyncio import Redis

from cpbot.config.settings import settings
from cpbot.services.clist.clist_service import ClistService
from cpbot.services.line.line_messaging_client import LineMessagingClient
from cpbot.services.line.line_notifier import ContestReminderNotifier
from cpbot.services.line.line_webhook_service import LineWebhookService
from cpbot.services.reminder_service import ContestReminderService
from cpbot.services.schedule.coordinator import DailyScheduleCoordinator
from cpbot.services.schedule.planner import DailyReminderPlanner
from cpbot.services.schedule.schedule_store import (
    ScheduleStore,
    SubscriberRegistry,
    TimezoneStore,
)
from cpbot.utils.logging import get_logger

logger = get_logger()


@dataclass
class ServiceContainer:
    redis: Redis
    store: ScheduleStore
    registry: SubscriberRegistry
    timezones: TimezoneStore
    clist: ClistService
    reminders: ContestReminderService
    messaging: LineMessagingClient
    notifier: ContestReminderNotifier
    planner: DailyReminderPlanner
    coordinator: DailyScheduleCoordinator
    webhook: LineWebhookService

    async def start(self) -> None:
        if not settings.SCHEDULER_ENABLED:
            logger.info("[DAILY] Planner disabled by configuration")
            return
        await self.planner.start(timedelta(seconds=settings.DAILY_PLANNER_PERIOD_SECONDS))

    async def aclose(self) -> None:
        await self.planner.stop()
        await self.clist.aclose()
        await self.redis.aclose()


def build_container(
    redis: Redis,
    clist: Optional[ClistService] = None,
    messaging: Optional[LineMessagingClient] = None,
) -> ServiceContainer:
    """Wire every service on top of one Redis client"""
    store = ScheduleStore(redis)
    registry = SubscriberRegistry(redis)
    timezones = TimezoneStore(redis)
    clist = clist or ClistService()
    messaging = messaging or LineMessagingClient()
    reminders = ContestReminderService(clist)
    notifier = ContestReminderNotifier(reminders, messaging)
    planner = DailyReminderPlanner(store, timezones, notifier)
    coordinator = DailyScheduleCoordinator(store, timezones, planner)
    webhook = LineWebhookService(messaging, registry, timezones, coordinator, reminders)
    return ServiceContainer(
        redis=redis,
        store=store,
        registry=registry,
        timezones=timezones,
        clist=clist,
        reminders=reminders,
        messaging=messaging,
        notifier=notifier,
        planner=planner,
        coordinator=coordinator,
        webhook=webhook,
    )


def get_services(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the application's services"""
    return request.app.state.services
