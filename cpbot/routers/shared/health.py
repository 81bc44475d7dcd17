from typing import Annotated

from fastapi import APIRouter, Depends, Request

from cpbot.config.settings import settings
from cpbot.db.redis import check_redis_connection
from cpbot.services.container import ServiceContainer, get_services
from cpbot.utils.responses import ResponseBuilder

health_router = APIRouter()


@health_router.get("")
async def health_check(
    request: Request,
    services: Annotated[ServiceContainer, Depends(get_services)],
):
    """
    Basic health check endpoint

    Returns application status, Redis reachability and the daily planner state
    """
    planner = services.planner
    generation = planner.generation
    redis_ok = await check_redis_connection(services.redis)

    data = {
        "status": "healthy" if redis_ok else "degraded",
        "service": settings.NAME,
        "version": settings.VERSION,
        "redis": "up" if redis_ok else "down",
        "planner": {
            "state": planner.state.value,
            "period": planner.period.total_seconds() if planner.period else None,
            "windowStart": generation.window_start.isoformat() if generation else None,
            "windowEnd": generation.window_end.isoformat() if generation else None,
            "pending": len(generation.actions) if generation else 0,
        },
    }
    return ResponseBuilder.success(
        request=request,
        data=data,
        message="Service is running",
    )
