"""Custom exception classes and error handling."""
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from comercialhg.config.sentry import add_breadcrumb, capture_exception
from comercialhg.config.settings import get_settings
from comercialhg.utils.logger import get_logger

logger = get_logger(__name__)


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code or "APP_ERROR"
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Validation error."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            code="VALIDATION_ERROR",
            details=details or {},
        )


class NotFoundError(AppError):
    """Resource not found error."""

    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = f"{resource} not found"
        if identifier:
            message += f" (id: {identifier})"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            code="NOT_FOUND",
        )


class PayloadTooLargeError(AppError):
    """Request body exceeded the configured ceiling."""

    def __init__(self, limit: int):
        super().__init__(
            message="Request body too large",
            status_code=413,
            code="PAYLOAD_TOO_LARGE",
            details={"limit": limit},
        )


class TooManyParametersError(AppError):
    """URL-encoded body carried more fields than the decoder accepts."""

    def __init__(self, limit: int):
        super().__init__(
            message="Too many parameters",
            status_code=413,
            code="TOO_MANY_PARAMETERS",
            details={"limit": limit},
        )


class MalformedBodyError(AppError):
    """Request body could not be decoded for its declared content type."""

    def __init__(self, message: str = "Malformed JSON body", code: str = "MALFORMED_JSON"):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            code=code,
        )


class StartupError(Exception):
    """A dependency needed before the listener opens is unavailable."""


class DatabaseUnavailableError(StartupError):
    """The data store reachability probe failed."""


class HeaderPolicyResolutionError(StartupError):
    """No strategy could resolve the security header provider."""


def error_content(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> dict:
    """Uniform error body shared by every error response."""
    return {
        "error": code,
        "message": message,
        "details": details or {},
    }


def app_error_response(exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_content(exc.code, exc.message, exc.details),
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle application errors."""
    add_breadcrumb(
        message=f"Application error: {exc.code}",
        category="error",
        level="warning" if exc.status_code < 500 else "error",
        data={
            "path": request.url.path,
            "method": request.method,
            "status_code": exc.status_code,
        },
    )

    logger.warning(
        "Application error",
        error=exc.code,
        message=exc.message,
        path=request.url.path,
        status_code=exc.status_code,
    )

    if exc.status_code >= 500:
        capture_exception(
            exc,
            context={"request": {"path": request.url.path, "method": request.method}},
            tags={"error_type": exc.code, "status_code": str(exc.status_code)},
        )

    return app_error_response(exc)


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors raised by route handlers."""
    logger.warning(
        "Validation error",
        path=request.url.path,
        errors=exc.errors(),
    )
    return JSONResponse(
        status_code=422,
        content=error_content(
            "VALIDATION_ERROR",
            "Request validation failed",
            {"errors": jsonable_encoder(exc.errors())},
        ),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Give framework-raised HTTP errors the uniform error shape."""
    logger.info(
        "HTTP error",
        path=request.url.path,
        method=request.method,
        status_code=exc.status_code,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_content(f"HTTP_{exc.status_code}", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Only the development environment sees the exception type and message;
    tracebacks never leave the process.
    """
    add_breadcrumb(
        message=f"Unexpected error: {type(exc).__name__}",
        category="exception",
        level="error",
        data={"path": request.url.path, "method": request.method},
    )

    logger.error(
        "Unexpected error",
        error=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=exc,
    )

    capture_exception(
        exc,
        context={
            "request": {
                "path": request.url.path,
                "method": request.method,
                "query_params": dict(request.query_params),
            },
        },
        tags={"error_type": type(exc).__name__},
    )

    settings = getattr(request.app.state, "settings", None) or get_settings()
    details = None
    if settings.is_development:
        details = {"type": type(exc).__name__, "message": str(exc)}

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_content("INTERNAL_ERROR", "An unexpected error occurred", details),
    )
