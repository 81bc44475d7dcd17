from typing import Annotated

from fastapi import APIRouter, Depends, Request

from cpbot.schemas.schedule_schemas import ScheduleResponse, SetScheduleRequest
from cpbot.services.container import ServiceContainer, get_services
from cpbot.services.schedule.coordinator import ScheduleView
from cpbot.utils.logging import get_logger
from cpbot.utils.responses import ResponseBuilder

schedules_router = APIRouter()
logger = get_logger()


def _to_response(services: ServiceContainer, view: ScheduleView) -> ScheduleResponse:
    action = services.planner.live_action(view.subscriber_id)
    return ScheduleResponse(
        subscriber_id=view.subscriber_id,
        second=view.second,
        time=view.time,
        timezone=view.timezone,
        next_fire_at=action.fire_at.isoformat() if action and action.pending else None,
    )


@schedules_router.get("/{subscriber_id}")
async def get_schedule(
    request: Request,
    subscriber_id: str,
    services: Annotated[ServiceContainer, Depends(get_services)],
):
    """Get the subscriber's daily reminder time"""
    view = await services.coordinator.describe(subscriber_id)
    return ResponseBuilder.success(
        request=request,
        data=_to_response(services, view).model_dump(by_alias=True),
        message="Daily schedule retrieved successfully",
    )


@schedules_router.put("/{subscriber_id}")
async def set_schedule(
    request: Request,
    subscriber_id: str,
    body: SetScheduleRequest,
    services: Annotated[ServiceContainer, Depends(get_services)],
):
    """
    Set the subscriber's daily reminder time.

    When a timezone is given the time is read in it and it becomes the
    subscriber's timezone. A rejected request changes nothing.
    """
    if body.timezone is not None:
        await services.coordinator.set_schedule_in(subscriber_id, body.time, body.timezone)
    else:
        await services.coordinator.set_schedule_text(subscriber_id, body.time)
    view = await services.coordinator.describe(subscriber_id)
    logger.info(f"Daily schedule for {subscriber_id} set to {view.time} ({view.timezone})")

    return ResponseBuilder.success(
        request=request,
        data=_to_response(services, view).model_dump(by_alias=True),
        message="Daily schedule set successfully",
    )


@schedules_router.delete("/{subscriber_id}")
async def clear_schedule(
    request: Request,
    subscriber_id: str,
    services: Annotated[ServiceContainer, Depends(get_services)],
):
    """Turn the subscriber's daily reminder off"""
    canceled = await services.coordinator.clear_schedule(subscriber_id)
    return ResponseBuilder.success(
        request=request,
        data={"subscriberId": subscriber_id, "liveReminderCanceled": canceled},
        message="Daily schedule cleared successfully",
    )
