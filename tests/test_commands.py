import pytest
from datetime import timedelta

from cpbot.services.line.commands import (
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
    parse_duration,
)

BOT = "cpbot"


class TestParseDuration:
    """Durations for the contest listing."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("90m", timedelta(minutes=90)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("2d", timedelta(days=2)),
            ("24h", timedelta(hours=24)),
            ("1.5h", timedelta(minutes=90)),
            ("45s", timedelta(seconds=45)),
            (" 3H ", timedelta(hours=3)),
        ],
    )
    def test_valid(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "10", "h", "1x", "0h", "-1h", "1h 30m"])
    def test_invalid(self, text):
        assert parse_duration(text) is None

    @pytest.mark.parametrize("text", ["367d", "99999999999d", "1" * 400 + "s"])
    def test_longer_than_listing_window(self, text):
        assert parse_duration(text) is None

    def test_listing_window_itself_is_accepted(self):
        assert parse_duration("366d") == timedelta(days=366)


class TestParseCommand:
    """Chat text to commands."""

    def test_echo(self):
        assert parse_command("@cpbot echo hello world", BOT) == EchoCommand("hello world")
        assert parse_command("@cpbot echo", BOT) == EchoCommand("")

    def test_show_contests(self):
        assert parse_command("@cpbot in 2h", BOT) == ShowContestsCommand(
            raw="2h", duration=timedelta(hours=2)
        )
        assert parse_command("@cpbot in", BOT) == ShowContestsCommand(
            raw="24h", duration=timedelta(hours=24)
        )

    def test_show_contests_with_bad_duration(self):
        assert parse_command("@cpbot in soon", BOT) == ShowContestsCommand(
            raw="soon", duration=None
        )
        assert parse_command("@cpbot in 99999999999d", BOT) == ShowContestsCommand(
            raw="99999999999d", duration=None
        )

    def test_daily_variants(self):
        assert parse_command("@cpbot daily 21:00", BOT) == SetDailyCommand("21:00")
        assert parse_command("@cpbot daily 25:00", BOT) == SetDailyCommand("25:00")
        assert parse_command("@cpbot daily off", BOT) == DailyOffCommand()
        assert parse_command("@cpbot daily OFF", BOT) == DailyOffCommand()
        assert parse_command("@cpbot daily", BOT) == ShowDailyCommand()

    def test_timezone_variants(self):
        assert parse_command("@cpbot timezone Asia/Jakarta", BOT) == SetTimezoneCommand(
            "Asia/Jakarta"
        )
        assert parse_command("@cpbot tz UTC+7", BOT) == SetTimezoneCommand("UTC+7")
        assert parse_command("@cpbot timezone", BOT) == ShowTimezoneCommand()

    def test_help(self):
        assert parse_command("@cpbot help", BOT) == HelpCommand()

    def test_mention_is_case_insensitive(self):
        assert parse_command("@CPBot daily 9", BOT) == SetDailyCommand("9")

    def test_mention_required_by_default(self):
        assert parse_command("daily 21:00", BOT) is None
        assert parse_command("@otherbot daily 21:00", BOT) is None
        assert parse_command("@cpbotx daily 21:00", BOT) is None

    def test_mention_optional_in_direct_chat(self):
        assert parse_command("daily 21:00", BOT, require_mention=False) == SetDailyCommand(
            "21:00"
        )
        assert parse_command("@cpbot daily 21:00", BOT, require_mention=False) == (
            SetDailyCommand("21:00")
        )

    @pytest.mark.parametrize(
        "text", ["", "@cpbot", "@cpbot hello", "@cpbot dailyish", "@cpbot info", "@cpbot daily 9 10"]
    )
    def test_not_a_command(self, text):
        assert parse_command(text, BOT) is None

    def test_help_text_mentions_bot(self):
        assert "@cpbot daily <HH:MM>" in help_text(BOT)
