"""Request logging middleware."""
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from comercialhg.utils.logger import get_logger

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every request that reaches routing and the outcome it produced.

    The request line is logged before routing so that requests which never
    complete are still recorded. This stage never changes the request or
    the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        log_data = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
        }
        logger.info("API request", **log_data)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "API request failed",
                error=type(e).__name__,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
                **log_data,
            )
            raise

        logger.info(
            "API response",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            **log_data,
        )
        return response
