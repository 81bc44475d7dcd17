from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cpbot.config.settings import settings
from cpbot.db.redis import check_redis_connection, create_redis_client
from cpbot.middlewares import RequestIDMiddleware
from cpbot.routers import main_router, webhook_router
from cpbot.services.container import ServiceContainer, build_container
from cpbot.utils.errors import setup_error_handlers
from cpbot.utils.logging import get_logger

# Initialize the logger
logger = get_logger()

ContainerFactory = Callable[[], ServiceContainer]


def default_container() -> ServiceContainer:
    return build_container(create_redis_client())


def create_application(container_factory: Optional[ContainerFactory] = None) -> FastAPI:
    """Initialize the FastAPI application with settings and lifespan events."""
    factory = container_factory or default_container

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        logger.info(f"{settings.NAME} is starting up...")
        services = factory()
        if not await check_redis_connection(services.redis):
            logger.warning("Starting without Redis, daily reminders resume once it is reachable")
        application.state.services = services
        await services.start()
        try:
            yield
        finally:
            logger.info(f"{settings.NAME} is shutting down...")
            await services.aclose()

    application = FastAPI(
        title=settings.NAME, version=settings.VERSION, lifespan=lifespan
    )

    # Setup error handlers
    setup_error_handlers(application)

    # Add CORS middleware
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_HOSTS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Line-Signature"],
    )
    application.add_middleware(RequestIDMiddleware)

    # Routers
    application.include_router(main_router, prefix=settings.API_PREFIX, tags=["APIs"])
    application.include_router(
        webhook_router, prefix=settings.WEBHOOK_PREFIX, tags=["Webhooks"]
    )

    return application


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cpbot.main:app",
        host="0.0.0.0",
        port=8000,
        log_config=None,
        log_level=None,
    )
