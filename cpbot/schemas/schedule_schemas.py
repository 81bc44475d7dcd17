from typing import Optional
from pydantic import Field

from cpbot.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class SetScheduleRequest(BaseModel):
    time: str = Field(..., description="Wall-clock time HH[:MM[:SS]]", examples=["09:00"])
    timezone: Optional[str] = Field(
        None,
        description="Timezone to store for the subscriber before parsing the time",
        examples=["Asia/Jakarta"],
    )


class ScheduleResponse(BaseModel):
    subscriber_id: str = Field(..., description="Subscriber id, e.g. user:U1234")
    second: int = Field(..., description="Canonical UTC second of day")
    time: str = Field(..., description="Time rendered in the subscriber's timezone")
    timezone: str = Field(..., description="Subscriber's timezone")
    next_fire_at: Optional[str] = Field(
        None, description="Armed reminder in the current window, ISO format"
    )


class PushRequest(BaseModel):
    user: str = Field(..., description="Subscriber id to push to")
    text: str = Field(..., min_length=1, description="Message text")


class RemindRequest(BaseModel):
    user: str = Field(..., description="Subscriber id to send the daily listing to")
