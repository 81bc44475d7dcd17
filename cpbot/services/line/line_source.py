import re
from typing import Union

from linebot.v3.webhooks import GroupSource, RoomSource, UserSource

LineSource = Union[UserSource, GroupSource, RoomSource]

_SUBSCRIBER_ID_PATTERN = re.compile(r"^(user|group|room):(\w+)$")


def subscriber_id_from_source(source: LineSource) -> str:
    """Stable subscriber id for a LINE event source, e.g. "group:C4af4980..."."""
    if isinstance(source, GroupSource):
        return f"group:{source.group_id}"
    if isinstance(source, RoomSource):
        return f"room:{source.room_id}"
    if isinstance(source, UserSource):
        return f"user:{source.user_id}"
    raise ValueError(f"Unsupported LINE event source: {source!r}")


def push_target(subscriber_id: str) -> str:
    """The LINE id to push to for a subscriber id"""
    match = _SUBSCRIBER_ID_PATTERN.match(subscriber_id)
    if not match:
        raise ValueError(f"Invalid subscriber id: {subscriber_id}")
    return match.group(2)


def is_direct_chat(subscriber_id: str) -> bool:
    return subscriber_id.startswith("user:")
