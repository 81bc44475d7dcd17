from datetime import tzinfo

from cpbot.services.line.line_messaging_client import LineMessagingClient
from cpbot.services.line.line_source import push_target
from cpbot.services.reminder_service import ContestReminderService
from cpbot.utils.errors import BackendError, LineApplicationError
from cpbot.utils.logging import get_logger

logger = get_logger()


class ContestReminderNotifier:
    """Sends the daily contest listing to one subscriber over LINE"""

    def __init__(self, reminders: ContestReminderService, messaging: LineMessagingClient):
        self.reminders = reminders
        self.messaging = messaging

    async def notify(self, subscriber_id: str, tz: tzinfo) -> bool:
        try:
            to = push_target(subscriber_id)
        except ValueError as e:
            logger.error(f"[DAILY] found invalid user [{subscriber_id}]: {str(e)}")
            return False

        try:
            messages = await self.reminders.daily_messages(tz)
        except BackendError as e:
            logger.error(f"[DAILY] Error generating message: {e.message}")
            return False

        try:
            await self.messaging.push_text(to, messages)
        except LineApplicationError as e:
            logger.error(f"[DAILY] Error sending message to [{to}]: {e.message}")
            return False
        return True
