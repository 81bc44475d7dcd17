from .commands import parse_command, parse_duration
from .line_messaging_client import LineMessagingClient
from .line_notifier import ContestReminderNotifier
from .line_source import push_target, subscriber_id_from_source
from .line_webhook_service import LineWebhookService

__all__ = [
    "ContestReminderNotifier",
    "LineMessagingClient",
    "LineWebhookService",
    "parse_command",
    "parse_duration",
    "push_target",
    "subscriber_id_from_source",
]
