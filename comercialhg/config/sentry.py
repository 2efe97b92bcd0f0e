"""Sentry error tracking configuration."""
import os
from typing import Any, Dict, Optional

import sentry_sdk
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from comercialhg.utils.logger import get_logger

logger = get_logger(__name__)


class SentrySettings(BaseSettings):
    """Sentry configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    dsn: Optional[str] = Field(None, alias="SENTRY_DSN")
    environment: str = Field("development", alias="SENTRY_ENVIRONMENT")
    release: Optional[str] = Field(None, alias="SENTRY_RELEASE")
    traces_sample_rate: float = Field(0.1, alias="SENTRY_TRACES_SAMPLE_RATE")
    send_default_pii: bool = Field(False, alias="SENTRY_SEND_DEFAULT_PII")

    # Comma-separated header names stripped from events before sending
    sensitive_headers: str = Field(
        "authorization,cookie,set-cookie,x-api-key",
        alias="SENTRY_SENSITIVE_HEADERS",
    )

    enable_alerts: bool = Field(True, alias="SENTRY_ENABLE_ALERTS")


settings = SentrySettings()


def is_enabled() -> bool:
    """True when events should be forwarded to Sentry."""
    return bool(settings.dsn) and settings.enable_alerts


def init_sentry() -> None:
    """
    Initialize Sentry error tracking.

    Called during early setup, right after the `.env` file is loaded.
    Without `SENTRY_DSN` the server only logs errors locally. Sentry is
    never initialized while `TESTING=true`.
    """
    if not settings.dsn:
        logger.info("Sentry DSN not configured, error tracking disabled")
        return

    if os.getenv("TESTING") == "true":
        logger.info("Skipping Sentry initialization in test environment")
        return

    sentry_sdk.init(
        dsn=settings.dsn,
        environment=settings.environment,
        release=settings.release,
        traces_sample_rate=settings.traces_sample_rate,
        send_default_pii=settings.send_default_pii,
        integrations=[
            SqlalchemyIntegration(),
            # Logs become breadcrumbs; errors are captured explicitly
            LoggingIntegration(level=None, event_level=None),
        ],
        before_send=filter_sensitive_data,
    )
    logger.info(
        "Sentry initialized",
        environment=settings.environment,
        release=settings.release,
    )


def filter_sensitive_data(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Remove credentials from a Sentry event before it leaves the process.

    Drops the configured sensitive request headers (case-insensitive) and
    reduces the user context to its id.
    """
    sensitive = {
        header.strip().lower()
        for header in settings.sensitive_headers.split(",")
        if header.strip()
    }

    headers = event.get("request", {}).get("headers")
    if headers:
        for name in [h for h in headers if h.lower() in sensitive]:
            headers.pop(name, None)

    if "user" in event:
        event["user"] = {"id": event["user"].get("id")}

    return event


def capture_exception(
    exception: BaseException,
    level: str = "error",
    context: Optional[Dict[str, Any]] = None,
    tags: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    """
    Capture an exception to Sentry with additional context.

    Returns:
        Event ID if Sentry is configured, None otherwise
    """
    if not is_enabled():
        return None

    with sentry_sdk.new_scope() as scope:
        scope.set_level(level)
        for key, value in (context or {}).items():
            scope.set_context(key, value if isinstance(value, dict) else {"value": value})
        for key, value in (tags or {}).items():
            scope.set_tag(key, value)
        return sentry_sdk.capture_exception(exception)


def add_breadcrumb(
    message: str,
    category: str = "default",
    level: str = "info",
    data: Optional[Dict[str, Any]] = None,
) -> None:
    """Add a breadcrumb describing what happened before an error."""
    if not is_enabled():
        return
    sentry_sdk.add_breadcrumb(
        message=message,
        category=category,
        level=level,
        data=data or {},
    )
