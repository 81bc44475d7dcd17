"""
Chat commands understood by the bot.

Every command is addressed to the bot by name, e.g. "@cpbot daily 21:00".
In a one-to-one chat the mention may be left out.
"""

import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Union

from cpbot.services.reminder_service import MAX_LISTING_WINDOW

_DURATION_UNITS = {
    "d": timedelta(days=1),
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
}
_DURATION_PATTERN = re.compile(r"^(?:\d+(?:\.\d+)?[dhms])+$")
_DURATION_PART_PATTERN = re.compile(r"(\d+(?:\.\d+)?)([dhms])")


@dataclass(frozen=True)
class EchoCommand:
    text: str


@dataclass(frozen=True)
class ShowContestsCommand:
    raw: str
    duration: Optional[timedelta]


@dataclass(frozen=True)
class SetDailyCommand:
    time_text: str


@dataclass(frozen=True)
class DailyOffCommand:
    pass


@dataclass(frozen=True)
class ShowDailyCommand:
    pass


@dataclass(frozen=True)
class SetTimezoneCommand:
    name: str


@dataclass(frozen=True)
class ShowTimezoneCommand:
    pass


@dataclass(frozen=True)
class HelpCommand:
    pass


Command = Union[
    EchoCommand,
    ShowContestsCommand,
    SetDailyCommand,
    DailyOffCommand,
    ShowDailyCommand,
    SetTimezoneCommand,
    ShowTimezoneCommand,
    HelpCommand,
]


def parse_duration(text: str) -> Optional[timedelta]:
    """
    Parse a duration such as "90m", "1h30m", "2.5h" or "2d".

    Returns None when the text is not a positive duration or is longer than
    MAX_LISTING_WINDOW.
    """
    text = (text or "").strip().lower()
    if not _DURATION_PATTERN.match(text):
        return None

    seconds = 0.0
    for amount, unit in _DURATION_PART_PATTERN.findall(text):
        seconds += float(amount) * _DURATION_UNITS[unit].total_seconds()
    if not 0 < seconds <= MAX_LISTING_WINDOW.total_seconds():
        return None
    return timedelta(seconds=seconds)


def _strip_mention(text: str, bot_name: str, require_mention: bool) -> Optional[str]:
    mention = re.match(rf"^@{re.escape(bot_name)}\b\s*(.*)$", text, re.IGNORECASE | re.DOTALL)
    if mention:
        return mention.group(1)
    if require_mention:
        return None
    return text


def parse_command(text: str, bot_name: str, require_mention: bool = True) -> Optional[Command]:
    """Parse a chat message into a command, or None if it is not one"""
    body = _strip_mention((text or "").strip(), bot_name, require_mention)
    if body is None:
        return None

    match = re.match(r"^echo\b\s*(.*)$", body, re.IGNORECASE | re.DOTALL)
    if match:
        return EchoCommand(match.group(1))

    match = re.match(r"^in\b\s*(\S*)\s*$", body, re.IGNORECASE)
    if match:
        raw = match.group(1)
        if not raw:
            return ShowContestsCommand(raw="24h", duration=timedelta(hours=24))
        return ShowContestsCommand(raw=raw, duration=parse_duration(raw))

    match = re.match(r"^daily\b\s*(\S*)\s*$", body, re.IGNORECASE)
    if match:
        argument = match.group(1)
        if not argument:
            return ShowDailyCommand()
        if argument.lower() == "off":
            return DailyOffCommand()
        return SetDailyCommand(argument)

    match = re.match(r"^(?:timezone|tz)\b\s*(.*?)\s*$", body, re.IGNORECASE)
    if match:
        if not match.group(1):
            return ShowTimezoneCommand()
        return SetTimezoneCommand(match.group(1))

    if re.match(r"^help\s*$", body, re.IGNORECASE):
        return HelpCommand()
    return None


def help_text(bot_name: str) -> str:
    return "\n".join(
        [
            "Available commands:",
            f"@{bot_name} in <duration> - contests starting within e.g. 24h, 90m, 2d",
            f"@{bot_name} daily <HH:MM> - daily reminder at the given time",
            f"@{bot_name} daily - show the daily reminder time",
            f"@{bot_name} daily off - turn the daily reminder off",
            f"@{bot_name} timezone <name> - set your timezone, e.g. Asia/Jakarta or UTC+7",
            f"@{bot_name} timezone - show your timezone",
            f"@{bot_name} echo <text> - repeat the text",
        ]
    )
