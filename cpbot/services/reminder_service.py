from datetime import timedelta, tzinfo
from typing import List

from cpbot.config.settings import settings
from cpbot.services.clist.clist_service import ClistService, Contest
from cpbot.utils.datetime_utils import utc_now
from cpbot.utils.logging import get_logger

logger = get_logger()

DAILY_HEADER = "Contests in the next 24 hours:"
EMPTY_LISTING = "0 contest found"
MAX_LISTING_WINDOW = timedelta(days=366)


def format_contest_line(contest: Contest, tz: tzinfo) -> str:
    local = contest.start.astimezone(tz)
    starts_at = f"{local:%b} {local.day} {local:%H:%M} {local.tzname()}"
    return f"- {contest.name}. Starts at {starts_at}. Link: {contest.link}\n"


def generate_upcoming_contests_message(
    contests: List[Contest], tz: tzinfo, header: str, limit: int
) -> List[str]:
    """
    Render a contest listing as one or more chat messages.

    Lines are packed under ``header`` into messages of at most ``limit``
    characters; a line never spans two messages.
    """
    messages: List[str] = []
    buffer = f"{header}\n"
    for contest in contests:
        line = format_contest_line(contest, tz)
        if len(buffer) + len(line) > limit:
            messages.append(buffer.rstrip("\n"))
            buffer = line
        else:
            buffer += line
    if not contests:
        buffer += EMPTY_LISTING
    messages.append(buffer.rstrip("\n"))
    return messages


class ContestReminderService:
    """Builds contest reminder texts from the clist.by listing"""

    def __init__(self, clist_service: ClistService, limit: int = settings.LINE_MAX_MESSAGE_LENGTH):
        self.clist_service = clist_service
        self.limit = limit

    async def upcoming_messages(
        self, tz: tzinfo, duration: timedelta, header: str
    ) -> List[str]:
        """
        Raises:
            BackendError: the listing could not be fetched
        """
        if duration > MAX_LISTING_WINDOW:
            logger.warning(f"Listing window {duration} capped at {MAX_LISTING_WINDOW}")
            duration = MAX_LISTING_WINDOW
        start_from = utc_now()
        contests = await self.clist_service.get_contests_starting_between(
            start_from, start_from + duration
        )
        logger.debug(f"Found {len(contests)} contests starting within {duration}")
        return generate_upcoming_contests_message(contests, tz, header, self.limit)

    async def daily_messages(self, tz: tzinfo) -> List[str]:
        return await self.upcoming_messages(tz, timedelta(hours=24), DAILY_HEADER)
