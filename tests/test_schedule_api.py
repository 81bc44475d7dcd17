import base64
import hashlib
import hmac
import json
import uuid
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from cpbot.config.settings import settings
from cpbot.main import create_application
from cpbot.services.clist.clist_service import ClistService
from cpbot.services.container import build_container
from cpbot.services.line.line_messaging_client import LineMessagingClient
from cpbot.utils.errors import LineApplicationError

API = settings.API_PREFIX
WEBHOOK = f"{settings.WEBHOOK_PREFIX}/line"


@pytest.fixture
def messaging() -> AsyncMock:
    return AsyncMock(spec=LineMessagingClient)


@pytest.fixture
def clist() -> AsyncMock:
    mock_clist = AsyncMock(spec=ClistService)
    mock_clist.get_contests_starting_between.return_value = []
    return mock_clist


@pytest.fixture
def client(redis, messaging, clist):
    app = create_application(
        lambda: build_container(redis, clist=clist, messaging=messaging)
    )
    with TestClient(app) as test_client:
        yield test_client


class TestHealth:
    """Health endpoint."""

    def test_reports_planner_state(self, client):
        response = client.get(f"{API}/health")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["redis"] == "up"
        assert body["data"]["planner"]["state"] == "active"
        assert body["data"]["planner"]["period"] == settings.DAILY_PLANNER_PERIOD_SECONDS

    def test_request_id_is_echoed(self, client):
        request_id = str(uuid.uuid4())

        response = client.get(f"{API}/health", headers={"X-Request-ID": request_id})

        assert response.headers["X-Request-ID"] == request_id
        assert response.json()["requestId"] == request_id

    def test_redis_down_is_reported(self, client, redis):
        redis.fail = True

        response = client.get(f"{API}/health")

        assert response.json()["data"]["status"] == "degraded"


class TestSchedules:
    """Daily schedule endpoints."""

    def test_set_then_get(self, client):
        response = client.put(f"{API}/schedules/user:U1", json={"time": "21:00"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["subscriberId"] == "user:U1"
        assert data["second"] == 21 * 3600
        assert data["time"] == "21:00"
        assert data["timezone"] == "UTC"

        response = client.get(f"{API}/schedules/user:U1")
        assert response.status_code == 200
        assert response.json()["data"]["time"] == "21:00"

    def test_set_with_timezone(self, client):
        response = client.put(
            f"{API}/schedules/group:C1",
            json={"time": "07:00", "timezone": "Asia/Jakarta"},
        )

        data = response.json()["data"]
        assert data["second"] == 0
        assert data["time"] == "07:00"
        assert data["timezone"] == "Asia/Jakarta"

    def test_time_within_current_window_is_armed(self, client):
        soon = datetime.now(timezone.utc) + timedelta(minutes=30)

        response = client.put(f"{API}/schedules/user:U1", json={"time": f"{soon:%H:%M}"})

        next_fire_at = datetime.fromisoformat(response.json()["data"]["nextFireAt"])
        assert timedelta(0) < next_fire_at - datetime.now(timezone.utc) <= timedelta(minutes=30)

    def test_invalid_time(self, client):
        response = client.put(f"{API}/schedules/user:U1", json={"time": "25:00"})

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "25:00 is not a valid time"
        assert body["meta"]["error_code"] == "TIME_OUT_OF_RANGE"

    def test_invalid_timezone(self, client):
        response = client.put(
            f"{API}/schedules/user:U1", json={"time": "07:00", "timezone": "Moon/Base"}
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Moon/Base is not a valid timezone"

    def test_rejected_time_leaves_existing_schedule(self, client):
        client.put(f"{API}/schedules/user:U1", json={"time": "09:00"})

        response = client.put(
            f"{API}/schedules/user:U1", json={"time": "25:00", "timezone": "Asia/Tokyo"}
        )
        assert response.status_code == 400

        data = client.get(f"{API}/schedules/user:U1").json()["data"]
        assert data["time"] == "09:00"
        assert data["timezone"] == "UTC"
        assert data["second"] == 9 * 3600

    def test_missing_time(self, client):
        response = client.put(f"{API}/schedules/user:U1", json={})
        assert response.status_code == 422

    def test_get_unknown(self, client):
        response = client.get(f"{API}/schedules/user:nobody")

        assert response.status_code == 404
        assert response.json()["meta"]["error_code"] == "SCHEDULE_NOT_SET"

    def test_delete(self, client):
        client.put(f"{API}/schedules/user:U1", json={"time": "21:00"})

        response = client.delete(f"{API}/schedules/user:U1")

        assert response.status_code == 200
        assert client.get(f"{API}/schedules/user:U1").status_code == 404

    def test_backend_failure(self, client, redis):
        redis.fail = True

        response = client.put(f"{API}/schedules/user:U1", json={"time": "21:00"})

        assert response.status_code == 503
        assert response.json()["message"] == "Something went wrong, please try again later."


class TestReminders:
    """Manual push and on-demand reminder."""

    def test_push(self, client, messaging):
        response = client.post(f"{API}/push", json={"user": "user:U1", "text": "hi"})

        assert response.status_code == 200
        messaging.push_text.assert_awaited_once_with("U1", ["hi"])

    def test_push_to_invalid_subscriber(self, client, messaging):
        response = client.post(f"{API}/push", json={"user": "U1", "text": "hi"})

        assert response.status_code == 400
        messaging.push_text.assert_not_awaited()

    def test_remind(self, client, messaging):
        response = client.post(f"{API}/remind", json={"user": "group:C1"})

        assert response.status_code == 200
        messaging.push_text.assert_awaited_once_with(
            "C1", ["Contests in the next 24 hours:\n0 contest found"]
        )

    def test_remind_not_delivered(self, client, messaging):
        messaging.push_text.side_effect = LineApplicationError("push failed")

        response = client.post(f"{API}/remind", json={"user": "user:U1"})

        assert response.status_code == 502


class TestLineWebhook:
    """LINE webhook endpoint."""

    @staticmethod
    def _sign(body: str) -> str:
        digest = hmac.new(
            settings.LINE_CHANNEL_SECRET.encode(), body.encode(), hashlib.sha256
        ).digest()
        return base64.b64encode(digest).decode()

    def test_missing_signature(self, client):
        response = client.post(WEBHOOK, content="{}")
        assert response.status_code == 400

    def test_invalid_signature(self, client):
        body = json.dumps({"destination": "Ubot", "events": []})

        response = client.post(
            WEBHOOK, content=body, headers={"X-Line-Signature": "aW52YWxpZA=="}
        )

        assert response.status_code == 400

    def test_signed_payload(self, client):
        body = json.dumps({"destination": "Ubot", "events": []})

        response = client.post(
            WEBHOOK, content=body, headers={"X-Line-Signature": self._sign(body)}
        )

        assert response.status_code == 200
        assert response.json()["data"] == {"events": 0}
