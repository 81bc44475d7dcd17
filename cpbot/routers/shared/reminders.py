from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request

from cpbot.schemas.schedule_schemas import PushRequest, RemindRequest
from cpbot.services.container import ServiceContainer, get_services
from cpbot.services.line.line_source import push_target
from cpbot.services.schedule.time_of_day import load_timezone
from cpbot.utils.responses import ResponseBuilder

reminders_router = APIRouter()


def _target(subscriber_id: str) -> str:
    try:
        return push_target(subscriber_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@reminders_router.post("/push")
async def push_message(
    request: Request,
    body: PushRequest,
    services: Annotated[ServiceContainer, Depends(get_services)],
):
    """Push a plain text message to a subscriber"""
    await services.messaging.push_text(_target(body.user), [body.text])
    return ResponseBuilder.success(
        request=request,
        data={"user": body.user},
        message="Message pushed successfully",
    )


@reminders_router.post("/remind")
async def send_reminder(
    request: Request,
    body: RemindRequest,
    services: Annotated[ServiceContainer, Depends(get_services)],
):
    """Send the daily contest listing to a subscriber right now"""
    _target(body.user)
    tz = load_timezone(await services.timezones.get(body.user))
    delivered = await services.notifier.notify(body.user, tz)
    if not delivered:
        raise HTTPException(status_code=502, detail="Reminder could not be delivered")

    return ResponseBuilder.success(
        request=request,
        data={"user": body.user},
        message="Reminder sent successfully",
    )
