from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cpbot.config.settings import settings
from cpbot.utils.datetime_utils import to_utc
from cpbot.utils.errors import BackendError
from cpbot.utils.logging import get_logger

logger = get_logger()

CLIST_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


class Contest(BaseModel):
    """A contest as listed by clist.by (times in UTC)."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = Field(alias="event")
    link: str = Field(alias="href")
    start: datetime
    end: datetime
    duration: timedelta

    @field_validator("id", mode="before")
    def stringify_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("start", "end")
    def assume_utc(cls, v: datetime) -> datetime:
        return to_utc(v)

    @field_validator("duration", mode="before")
    def seconds_to_timedelta(cls, v: Any) -> Any:
        if isinstance(v, (int, float)):
            return timedelta(seconds=v)
        return v


class ClistService:
    """Client for the clist.by contest listing API"""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        api_url: str = settings.CLIST_API_URL,
        username: str = settings.CLIST_API_USERNAME,
        api_key: str = settings.CLIST_API_KEY,
    ):
        self.api_url = api_url
        self.client = client or httpx.AsyncClient(timeout=settings.CLIST_TIMEOUT_SECONDS)
        self._authorization = f"ApiKey {username}:{api_key}"

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _get_contests(self, params: Dict[str, str]) -> List[Contest]:
        try:
            response = await self.client.get(
                self.api_url,
                params=params,
                headers={"Authorization": self._authorization},
            )
            response.raise_for_status()
            objects = response.json().get("objects", [])
            return [Contest.model_validate(obj) for obj in objects]
        except httpx.HTTPError as e:
            logger.error(f"clist request failed: {str(e)}")
            raise BackendError("Failed to fetch contests from clist.by") from e
        except (ValueError, ValidationError) as e:
            logger.error(f"clist returned an unexpected payload: {str(e)}")
            raise BackendError("Unexpected response from clist.by") from e

    async def get_contests_starting_between(
        self, begin: datetime, end: datetime
    ) -> List[Contest]:
        """Contests whose start lies in [begin, end], ordered by start time"""
        params = {
            "start__gte": to_utc(begin).strftime(CLIST_TIME_FORMAT),
            "start__lte": to_utc(end).strftime(CLIST_TIME_FORMAT),
            "order_by": "start",
        }
        contests = await self._get_contests(params)
        return sorted(contests, key=lambda contest: contest.start)
