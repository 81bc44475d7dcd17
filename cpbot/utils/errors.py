from typing import Optional

from fastapi import FastAPI, Request, status
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from .logging import get_logger
from .responses import ResponseBuilder

logger = get_logger()

TRANSIENT_FAILURE_MESSAGE = "Something went wrong, please try again later."


class InvalidTimeError(Exception):
    """Base for user-supplied time-of-day text that cannot be accepted."""

    def __init__(self, value: str, message: str, error_code: str):
        super().__init__(message)
        self.value = value
        self.message = message
        self.error_code = error_code


class InvalidFormatError(InvalidTimeError):
    """Time-of-day text is not HH, HH:MM or HH:MM:SS."""

    def __init__(self, value: str):
        super().__init__(
            value,
            f"Invalid time '{value}': should be in format HH[:MM[:SS]]",
            "INVALID_TIME_FORMAT",
        )


class OutOfRangeError(InvalidTimeError):
    """Time-of-day text is well formed but a component is out of range."""

    def __init__(self, value: str, component: str, upper: int):
        super().__init__(
            value,
            f"Invalid time '{value}': {component} must be in range [0, {upper}]",
            "TIME_OUT_OF_RANGE",
        )
        self.component = component


class InvalidTimezoneError(Exception):
    """Custom exception for unknown timezone names."""

    def __init__(self, value: str, error_code: str = "INVALID_TIMEZONE"):
        super().__init__(f"Unknown timezone '{value}'")
        self.value = value
        self.message = f"Unknown timezone '{value}'"
        self.error_code = error_code


class NotFoundError(Exception):
    """Custom exception for resource not found errors."""

    def __init__(
        self, message: str = "Resource not found", error_code: str = "NOT_FOUND"
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class NotSetError(NotFoundError):
    """The subscriber has no daily schedule."""

    def __init__(self, subscriber_id: str):
        super().__init__(
            f"No daily schedule set for {subscriber_id}", error_code="SCHEDULE_NOT_SET"
        )
        self.subscriber_id = subscriber_id


class AlreadyStartedError(Exception):
    """The daily planner was started twice."""

    def __init__(
        self,
        message: str = "Daily planner has already started",
        error_code: str = "SCHEDULER_ALREADY_STARTED",
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class BackendError(Exception):
    """Store or transport failure. The underlying error is kept as __cause__."""

    def __init__(self, message: str, error_code: str = "BACKEND_ERROR"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class LineApplicationError(Exception):
    """Custom exception for LINE application errors."""

    def __init__(self, message: str, error_code: str = "LINE_ERROR"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


def _cause_of(exc: Exception) -> Optional[str]:
    return repr(exc.__cause__) if exc.__cause__ is not None else None


def setup_error_handlers(app: FastAPI):
    """Setup custom error handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.error(f"HTTP Exception: {exc.status_code} - {exc.detail}")
        return ResponseBuilder.error(
            request=request,
            message=str(exc.detail),
            error_code="HTTP_ERROR",
            status_code=exc.status_code,
            meta={"http_status": exc.status_code},
        )

    """
    RequestValidationError is a sub-class of Pydantic's ValidationError.
    """

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        logger.error(f"Request Validation Error: {exc.errors()}")

        formatted_errors = []
        for error in exc.errors():
            field_path = " -> ".join(str(loc) for loc in error["loc"])
            formatted_errors.append(
                {
                    "field": field_path,
                    "message": error["msg"],
                    "type": error["type"],
                }
            )

        return ResponseBuilder.error(
            request=request,
            message="Request validation failed",
            errors=formatted_errors,
            error_code="VALIDATION_ERROR",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    @app.exception_handler(ValidationError)
    async def pydantic_validation_exception_handler(
        request: Request, exc: ValidationError
    ):
        logger.error(f"Pydantic Validation Error: {exc.errors()}")

        return ResponseBuilder.error(
            request=request,
            message="Data validation failed",
            error_code="INTERNAL_VALIDATION_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    @app.exception_handler(InvalidTimeError)
    async def invalid_time_exception_handler(request: Request, exc: InvalidTimeError):
        logger.info(f"Rejected time '{exc.value}': {exc.message}")

        return ResponseBuilder.error(
            request=request,
            message=f"{exc.value} is not a valid time",
            error_code=exc.error_code,
            status_code=status.HTTP_400_BAD_REQUEST,
            data={"value": exc.value},
            meta={"detail": exc.message},
        )

    @app.exception_handler(InvalidTimezoneError)
    async def invalid_timezone_exception_handler(
        request: Request, exc: InvalidTimezoneError
    ):
        logger.info(f"Rejected timezone '{exc.value}'")

        return ResponseBuilder.error(
            request=request,
            message=f"{exc.value} is not a valid timezone",
            error_code=exc.error_code,
            status_code=status.HTTP_400_BAD_REQUEST,
            data={"value": exc.value},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_exception_handler(request: Request, exc: NotFoundError):
        logger.info(f"Not Found: {exc.message}")

        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code=exc.error_code,
            status_code=status.HTTP_404_NOT_FOUND,
            meta={"error_type": "NOT_FOUND_ERROR"},
        )

    @app.exception_handler(BackendError)
    async def backend_exception_handler(request: Request, exc: BackendError):
        logger.error(f"Backend Error: {exc.message} (cause: {_cause_of(exc)})")

        # Don't expose backend details to callers
        return ResponseBuilder.error(
            request=request,
            message=TRANSIENT_FAILURE_MESSAGE,
            error_code=exc.error_code,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            meta={"error_type": "BACKEND_ERROR"},
        )

    @app.exception_handler(LineApplicationError)
    async def line_exception_handler(request: Request, exc: LineApplicationError):
        logger.error(f"LINE Error: {exc.message}")

        return ResponseBuilder.error(
            request=request,
            message=TRANSIENT_FAILURE_MESSAGE,
            error_code=exc.error_code,
            status_code=status.HTTP_502_BAD_GATEWAY,
            meta={"error_type": "LINE_ERROR"},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.opt(exception=exc).error(f"Unhandled Exception: {str(exc)}")

        return ResponseBuilder.error(
            request=request,
            message="An unexpected error occurred",
            error_code="INTERNAL_SERVER_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
