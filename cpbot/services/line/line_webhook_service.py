from datetime import timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Type

from linebot.v3.webhook import WebhookParser
from linebot.v3.webhooks import (
    Event,
    FollowEvent,
    JoinEvent,
    LeaveEvent,
    MessageEvent,
    TextMessageContent,
    UnfollowEvent,
)

from cpbot.config.settings import settings
from cpbot.services.line.commands import (
    Command,
    DailyOffCommand,
    EchoCommand,
    HelpCommand,
    SetDailyCommand,
    SetTimezoneCommand,
    ShowContestsCommand,
    ShowDailyCommand,
    ShowTimezoneCommand,
    help_text,
    parse_command,
)
from cpbot.services.line.line_messaging_client import LineMessagingClient
from cpbot.services.line.line_source import is_direct_chat, subscriber_id_from_source
from cpbot.services.reminder_service import ContestReminderService
from cpbot.services.schedule.coordinator import DailyScheduleCoordinator
from cpbot.services.schedule.schedule_store import SubscriberRegistry, TimezoneStore
from cpbot.services.schedule.time_of_day import format_time_of_day, load_timezone
from cpbot.utils.errors import (
    TRANSIENT_FAILURE_MESSAGE,
    BackendError,
    InvalidTimeError,
    InvalidTimezoneError,
    LineApplicationError,
    NotSetError,
)
from cpbot.utils.logging import get_logger

logger = get_logger()

CommandHandler = Callable[[str, Command], Awaitable[List[str]]]


class LineWebhookService:
    """Service for handling LINE webhook events"""

    def __init__(
        self,
        messaging: LineMessagingClient,
        registry: SubscriberRegistry,
        timezones: TimezoneStore,
        coordinator: DailyScheduleCoordinator,
        reminders: ContestReminderService,
        parser: Optional[WebhookParser] = None,
        bot_name: str = settings.LINE_BOT_NAME,
    ):
        self.messaging = messaging
        self.registry = registry
        self.timezones = timezones
        self.coordinator = coordinator
        self.reminders = reminders
        self.parser = parser or WebhookParser(settings.LINE_CHANNEL_SECRET)
        self.bot_name = bot_name

        self._command_handlers: Dict[Type, CommandHandler] = {
            EchoCommand: self._echo,
            ShowContestsCommand: self._show_contests,
            SetDailyCommand: self._set_daily,
            DailyOffCommand: self._daily_off,
            ShowDailyCommand: self._show_daily,
            SetTimezoneCommand: self._set_timezone,
            ShowTimezoneCommand: self._show_timezone,
            HelpCommand: self._help,
        }

    async def handle_events(self, body: str, signature: str) -> int:
        """
        Verify and dispatch a webhook payload; returns the number of events.

        Raises:
            InvalidSignatureError: the payload does not match the signature
        """
        events = self.parser.parse(body, signature)
        for event in events:
            await self._dispatch(event)
        return len(events)

    async def _dispatch(self, event: Event) -> None:
        if isinstance(event, (FollowEvent, JoinEvent)):
            await self._handle_follow_event(event)
        elif isinstance(event, (UnfollowEvent, LeaveEvent)):
            await self._handle_unfollow_event(event)
        elif isinstance(event, MessageEvent) and isinstance(
            event.message, TextMessageContent
        ):
            await self._handle_message_event(event)
        else:
            logger.debug(f"Ignoring LINE event of type {type(event).__name__}")

    async def _handle_follow_event(self, event: Event) -> None:
        """Someone followed the bot or invited it into a group or room"""
        subscriber_id = subscriber_id_from_source(event.source)
        logger.info(f"[FOLLOW] {subscriber_id}")

        messages = [settings.LINE_GREETING_MESSAGE]
        try:
            await self.registry.add(subscriber_id)
            tz = load_timezone(await self.timezones.get(subscriber_id))
            messages.extend(await self.reminders.daily_messages(tz))
        except (BackendError, InvalidTimezoneError) as e:
            logger.error(f"[FOLLOW] Error preparing greeting for {subscriber_id}: {str(e)}")

        await self._reply(event.reply_token, messages)

        try:
            await self.coordinator.set_schedule_text(
                subscriber_id, settings.LINE_DAILY_DEFAULT
            )
        except (BackendError, InvalidTimeError, InvalidTimezoneError) as e:
            logger.error(
                f"[FOLLOW] Error setting default daily reminder for {subscriber_id}: {str(e)}"
            )

    async def _handle_unfollow_event(self, event: Event) -> None:
        """Someone blocked the bot or removed it from a group or room"""
        subscriber_id = subscriber_id_from_source(event.source)
        logger.info(f"[UNFOLLOW] {subscriber_id}")
        try:
            await self.registry.remove(subscriber_id)
            await self.coordinator.clear_schedule(subscriber_id)
        except BackendError as e:
            logger.error(f"[UNFOLLOW] Error removing {subscriber_id}: {e.message}")

    async def _handle_message_event(self, event: MessageEvent) -> None:
        subscriber_id = subscriber_id_from_source(event.source)
        command = parse_command(
            event.message.text,
            self.bot_name,
            require_mention=not is_direct_chat(subscriber_id),
        )
        if command is None:
            return

        logger.info(f"[COMMAND] {subscriber_id}: {type(command).__name__}")
        handler = self._command_handlers[type(command)]
        try:
            messages = await handler(subscriber_id, command)
        except InvalidTimeError as e:
            messages = [f"{e.value} is not a valid time"]
        except InvalidTimezoneError as e:
            messages = [f"{e.value} is not a valid timezone"]
        except BackendError as e:
            logger.error(f"[COMMAND] {type(command).__name__} failed: {e.message}")
            messages = [TRANSIENT_FAILURE_MESSAGE]

        await self._reply(event.reply_token, messages)

    async def _echo(self, subscriber_id: str, command: EchoCommand) -> List[str]:
        return [command.text] if command.text else []

    async def _show_contests(
        self, subscriber_id: str, command: ShowContestsCommand
    ) -> List[str]:
        if command.duration is None:
            return [f"{command.raw} is not a valid duration"]
        tz = load_timezone(await self.timezones.get(subscriber_id))
        return await self.reminders.upcoming_messages(
            tz, command.duration, f"Contests starting within {_describe(command.duration)}:"
        )

    async def _set_daily(self, subscriber_id: str, command: SetDailyCommand) -> List[str]:
        second = await self.coordinator.set_schedule_text(subscriber_id, command.time_text)
        tz_name = await self.timezones.get(subscriber_id)
        time = format_time_of_day(second, load_timezone(tz_name))
        return [f"Daily contest reminder has been set everyday at {time} ({tz_name})"]

    async def _daily_off(self, subscriber_id: str, command: DailyOffCommand) -> List[str]:
        await self.coordinator.clear_schedule(subscriber_id)
        return ["Daily contest reminder has been turned off"]

    async def _show_daily(self, subscriber_id: str, command: ShowDailyCommand) -> List[str]:
        try:
            view = await self.coordinator.describe(subscriber_id)
        except NotSetError:
            return ["Daily contest reminder is turned off"]
        return [f"Daily contest reminder is set everyday at {view.time} ({view.timezone})"]

    async def _set_timezone(
        self, subscriber_id: str, command: SetTimezoneCommand
    ) -> List[str]:
        name = await self.coordinator.set_timezone(subscriber_id, command.name)
        return [f"Timezone has been set to {name}"]

    async def _show_timezone(
        self, subscriber_id: str, command: ShowTimezoneCommand
    ) -> List[str]:
        return [f"Your timezone is {await self.timezones.get(subscriber_id)}"]

    async def _help(self, subscriber_id: str, command: HelpCommand) -> List[str]:
        return [help_text(self.bot_name)]

    async def _reply(self, reply_token: Optional[str], messages: List[str]) -> None:
        if not reply_token or not messages:
            return
        try:
            await self.messaging.reply_text(reply_token, messages)
        except LineApplicationError as e:
            logger.error(f"Error sending reply: {e.message}")


def _describe(duration: timedelta) -> str:
    total = int(duration.total_seconds())
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    parts = []
    for amount, unit in ((days, "d"), (hours, "h"), (minutes, "m"), (seconds, "s")):
        if amount:
            parts.append(f"{amount}{unit}")
    return "".join(parts) or "0s"
