from fastapi import APIRouter

from .health import health_router
from .reminders import reminders_router
from .schedules import schedules_router

shared_router = APIRouter()

# Include sub-routers
shared_router.include_router(health_router, prefix="/health", tags=["Health Checks"])
shared_router.include_router(
    schedules_router, prefix="/schedules", tags=["Daily Schedules"]
)
shared_router.include_router(reminders_router, tags=["Reminders"])
