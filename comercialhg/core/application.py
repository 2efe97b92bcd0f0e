"""
Application factory.

Builds the FastAPI application: the middleware pipeline, the error
funnel, the API route table with its 404 fallback, and the front-end
bundle mount. The security header stage is installed separately by the
startup sequencer once its provider has been resolved (see
`comercialhg/core/server.py`).
"""
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from comercialhg.api.middleware.body import BodyDecodingMiddleware
from comercialhg.api.middleware.cors import AllowListCORSMiddleware
from comercialhg.api.middleware.error_funnel import ErrorFunnelMiddleware
from comercialhg.api.middleware.header_policy import HeaderPolicy, install_security_headers
from comercialhg.api.middleware.request_logging import RequestLoggingMiddleware
from comercialhg.api.routes import health, not_found
from comercialhg.api.routes.table import RouteTable, default_route_table
from comercialhg.api.static import mount_frontend
from comercialhg.config.security import get_cors_headers, get_cors_methods, get_cors_origins
from comercialhg.config.settings import Settings, get_settings
from comercialhg.utils.errors import (
    AppError,
    app_error_handler,
    general_exception_handler,
    http_exception_handler,
    validation_error_handler,
)
from comercialhg.utils.logger import get_logger

logger = get_logger(__name__)


def create_lifespan() -> Callable:
    """Create the application lifespan context manager."""
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application started", environment=app.state.settings.environment)
        yield
        logger.info("Application shutting down")

    return lifespan


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """
    Configure the request pipeline middleware.

    Middleware runs in reverse order of registration, so the stages are
    registered innermost first. Execution order per request:
    1. Security headers (installed at startup, outermost)
    2. CORS allow-list
    3. Body decoding
    4. Request logging (last stage before routing)
    5. Error funnel (turns handler exceptions into 500 responses)

    Args:
        app: FastAPI application instance
        settings: Process settings
    """
    app.add_middleware(ErrorFunnelMiddleware)

    app.add_middleware(RequestLoggingMiddleware)

    app.add_middleware(BodyDecodingMiddleware, limit=settings.body_limit_bytes)

    app.add_middleware(
        AllowListCORSMiddleware,
        allow_origins=get_cors_origins(settings),
        allow_credentials=True,
        allow_methods=get_cors_methods(),
        allow_headers=get_cors_headers(),
    )

    logger.info("Middleware configured successfully")


def setup_error_handlers(app: FastAPI) -> None:
    """
    Register the terminal error funnel.

    1. AppError (application errors with their own status)
    2. RequestValidationError (handler input validation)
    3. HTTPException (framework-raised HTTP errors)
    4. Exception (catch-all for failures outside the error funnel stage,
       no internal details outside development)
    """
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Error handlers registered successfully")


def register_routes(app: FastAPI, route_table: Optional[RouteTable] = None) -> None:
    """
    Register the health check, the resource groups and the API 404 fallback.

    The fallback must come after every group; it claims all remaining
    paths under the API prefix.

    Args:
        app: FastAPI application instance
        route_table: Resource groups to mount (defaults to the bundled table)
    """
    app.include_router(health.router)

    route_table = route_table if route_table is not None else default_route_table()
    for group in route_table:
        app.include_router(group.router, prefix=group.prefix)
        logger.debug("Resource group mounted", group=group.name, prefix=group.prefix)

    app.include_router(not_found.router)

    logger.info("Routes registered successfully", groups=len(route_table))


def create_application(
    settings: Optional[Settings] = None,
    route_table: Optional[RouteTable] = None,
    header_policy: Optional[HeaderPolicy] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Args:
        settings: Process settings (defaults to the environment)
        route_table: Resource groups to mount
        header_policy: Already resolved header policy to install right away

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="ComercialHG API",
        description="Comercial HG storefront and back-office API",
        version="1.0.0",
        lifespan=create_lifespan(),
        # Non-API paths belong to the front-end bundle
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.header_policy = None

    setup_middleware(app, settings)
    setup_error_handlers(app)
    register_routes(app, route_table)
    mount_frontend(app, settings.frontend_path)

    if header_policy is not None:
        install_security_headers(app, header_policy)

    return app
