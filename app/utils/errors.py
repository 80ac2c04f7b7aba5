from fastapi import FastAPI, Request, status
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError
from .logging import get_logger
from .responses import ResponseBuilder

logger = get_logger()


class FileTrackerError(Exception):
    """Base for errors that carry their own HTTP status and error code."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "BUSINESS_ERROR"
    default_message = "Request could not be completed"
    default_code = "BLOC_ERROR"

    def __init__(self, message: str = None, error_code: str = None):
        self.message = message or self.default_message
        self.error_code = error_code or self.default_code
        super().__init__(self.message)


class BusinessLogicError(FileTrackerError):
    """Unexpected service failure surfaced by a router."""


class AuthenticationError(FileTrackerError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "AUTHENTICATION_ERROR"
    default_message = "Authentication failed"
    default_code = "AUTH_ERROR"


class AuthorizationError(FileTrackerError):
    """Authenticated caller acting outside their role or on another user's data."""

    status_code = status.HTTP_403_FORBIDDEN
    error_type = "AUTHORIZATION_ERROR"
    default_message = "Access denied"
    default_code = "FORBIDDEN"


def _format_validation_errors(errors) -> list:
    return [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
            "input": error.get("input"),
        }
        for error in errors
    ]


def setup_error_handlers(app: FastAPI):
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(
            "HTTP exception", status_code=exc.status_code, detail=str(exc.detail)
        )
        return ResponseBuilder.error(
            request=request,
            message=str(exc.detail),
            error_code="HTTP_ERROR",
            status_code=exc.status_code,
            meta={"http_status": exc.status_code},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        formatted_errors = _format_validation_errors(exc.errors())
        logger.warning("Request validation error", errors=formatted_errors)

        return ResponseBuilder.error(
            request=request,
            message="Request validation failed",
            errors=formatted_errors,
            error_code="VALIDATION_ERROR",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    # Raised when a response schema is fed bad data, so it is a server fault
    @app.exception_handler(ValidationError)
    async def pydantic_validation_exception_handler(
        request: Request, exc: ValidationError
    ):
        logger.error(
            "Response model validation failed",
            errors=_format_validation_errors(exc.errors()),
        )
        return ResponseBuilder.error(
            request=request,
            message="Data validation failed",
            error_code="INTERNAL_VALIDATION_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error("SQLAlchemy error", error=str(exc))

        # Driver messages can leak schema details
        return ResponseBuilder.error(
            request=request,
            message="A database error occurred",
            error_code="DATABASE_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"error_type": "SQLALCHEMY_ERROR"},
        )

    @app.exception_handler(FileTrackerError)
    async def file_tracker_exception_handler(request: Request, exc: FileTrackerError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            exc.__class__.__name__,
            error_code=exc.error_code,
            error=exc.message,
            path=request.url.path,
        )
        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code=exc.error_code,
            status_code=exc.status_code,
            meta={"error_type": exc.error_type},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        logger.warning("Unmapped value error", error=str(exc))

        return ResponseBuilder.error(
            request=request,
            message=str(exc),
            error_code="VALUE_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            meta={"error_type": "VALUE_ERROR"},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.opt(exception=exc).error("Unhandled exception", error=str(exc))

        return ResponseBuilder.error(
            request=request,
            message="An internal server error occurred",
            error_code="INTERNAL_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"error_type": "INTERNAL_ERROR"},
        )
