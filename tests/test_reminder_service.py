import json
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import httpx

from cpbot.services.clist.clist_service import ClistService, Contest
from cpbot.services.reminder_service import (
    DAILY_HEADER,
    EMPTY_LISTING,
    MAX_LISTING_WINDOW,
    ContestReminderService,
    format_contest_line,
    generate_upcoming_contests_message,
)
from cpbot.utils.errors import BackendError


def make_contest(index: int, start: datetime) -> Contest:
    return Contest(
        id=str(index),
        name=f"Round {index}",
        link=f"https://codeforces.com/contest/{index}",
        start=start,
        end=start + timedelta(hours=2),
        duration=timedelta(hours=2),
    )


BEGIN = datetime(2024, 3, 5, 0, 0, tzinfo=timezone.utc)
END = datetime(2024, 3, 10, 0, 0, tzinfo=timezone.utc)

CLIST_PAYLOAD = {
    "meta": {"limit": 1000, "offset": 0, "total_count": 2},
    "objects": [
        {
            "id": 2,
            "event": "AtCoder Beginner Contest 344",
            "href": "https://atcoder.jp/contests/abc344",
            "start": "2024-03-09T12:00:00",
            "end": "2024-03-09T13:40:00",
            "duration": 6000,
            "resource": {"id": 93, "name": "atcoder.jp"},
        },
        {
            "id": 1,
            "event": "Codeforces Round 933",
            "href": "https://codeforces.com/contests/1941",
            "start": "2024-03-05T14:35:00",
            "end": "2024-03-05T16:35:00",
            "duration": 7200,
            "resource": {"id": 1, "name": "codeforces.com"},
        },
    ],
}


class TestMessageFormatting:
    """Contest listing text."""

    def test_line_in_subscriber_timezone(self):
        contest = make_contest(1, datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc))

        line = format_contest_line(contest, ZoneInfo("Asia/Jakarta"))

        assert line == (
            "- Round 1. Starts at Mar 5 19:00 WIB. "
            "Link: https://codeforces.com/contest/1\n"
        )

    def test_empty_listing(self):
        assert generate_upcoming_contests_message([], timezone.utc, DAILY_HEADER, 2000) == [
            f"{DAILY_HEADER}\n{EMPTY_LISTING}"
        ]

    def test_single_message(self):
        start = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)
        contests = [make_contest(i, start) for i in range(3)]

        messages = generate_upcoming_contests_message(contests, timezone.utc, "Upcoming:", 2000)

        assert len(messages) == 1
        assert messages[0].startswith("Upcoming:\n- Round 0.")
        assert messages[0].count("\n") == 3
        assert not messages[0].endswith("\n")

    def test_lines_are_never_split_across_messages(self):
        start = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)
        contests = [make_contest(i, start) for i in range(5)]
        line_length = len(format_contest_line(contests[0], timezone.utc))
        limit = line_length * 2 + 1

        messages = generate_upcoming_contests_message(contests, timezone.utc, "H:", limit)

        assert len(messages) == 3
        assert all(len(message) <= limit for message in messages)
        assert messages[0].startswith("H:\n- Round 0.")
        assert "Round 1" in messages[1] and "Round 2" in messages[1]
        joined = "\n".join(messages)
        for i in range(5):
            assert joined.count(f"- Round {i}.") == 1


class TestContestReminderService:
    """Building reminder texts from the clist listing."""

    @pytest.mark.asyncio
    async def test_daily_messages_cover_the_next_24_hours(self):
        clist = AsyncMock(spec=ClistService)
        clist.get_contests_starting_between.return_value = []
        service = ContestReminderService(clist, limit=2000)

        messages = await service.daily_messages(timezone.utc)

        assert messages == [f"{DAILY_HEADER}\n{EMPTY_LISTING}"]
        begin, end = clist.get_contests_starting_between.await_args.args
        assert end - begin == timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_listing_window_is_capped(self):
        clist = AsyncMock(spec=ClistService)
        clist.get_contests_starting_between.return_value = []
        service = ContestReminderService(clist)

        await service.upcoming_messages(timezone.utc, timedelta(days=5000000), "H:")

        begin, end = clist.get_contests_starting_between.await_args.args
        assert end - begin == MAX_LISTING_WINDOW

    @pytest.mark.asyncio
    async def test_backend_error_propagates(self):
        clist = AsyncMock(spec=ClistService)
        clist.get_contests_starting_between.side_effect = BackendError("down")
        service = ContestReminderService(clist)

        with pytest.raises(BackendError):
            await service.upcoming_messages(timezone.utc, timedelta(hours=2), "H:")


class TestClistService:
    """clist.by API client."""

    @pytest.mark.asyncio
    async def test_contests_starting_between(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            seen["authorization"] = request.headers.get("Authorization")
            return httpx.Response(200, content=json.dumps(CLIST_PAYLOAD))

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        service = ClistService(
            client=client,
            api_url="https://clist.test/api/v1/contest/",
            username="alice",
            api_key="secret",
        )

        contests = await service.get_contests_starting_between(
            datetime(2024, 3, 5, 0, 0, tzinfo=timezone.utc),
            datetime(2024, 3, 10, 0, 0, tzinfo=timezone.utc),
        )
        await service.aclose()

        assert seen["authorization"] == "ApiKey alice:secret"
        assert seen["params"] == {
            "start__gte": "2024-03-05T00:00:00",
            "start__lte": "2024-03-10T00:00:00",
            "order_by": "start",
        }
        assert [c.name for c in contests] == [
            "Codeforces Round 933",
            "AtCoder Beginner Contest 344",
        ]
        assert contests[0].id == "1"
        assert contests[0].start == datetime(2024, 3, 5, 14, 35, tzinfo=timezone.utc)
        assert contests[0].duration == timedelta(hours=2)
        assert contests[0].link == "https://codeforces.com/contests/1941"

    @pytest.mark.asyncio
    async def test_http_error_is_a_backend_error(self):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(503))
        )
        service = ClistService(client=client, api_url="https://clist.test/api/v1/contest/")

        with pytest.raises(BackendError) as exc_info:
            await service.get_contests_starting_between(BEGIN, END)
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)
        await service.aclose()

    @pytest.mark.asyncio
    async def test_unexpected_payload_is_a_backend_error(self):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, content=b"<html>maintenance</html>")
            )
        )
        service = ClistService(client=client, api_url="https://clist.test/api/v1/contest/")

        with pytest.raises(BackendError):
            await service.get_contests_starting_between(BEGIN, END)
        await service.aclose()
