"""Structured logging configuration."""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

import structlog
from structlog.stdlib import LoggerFactory

# Rotated log files are capped at 10MB with 10 backups kept
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 10


def _build_processors(log_format: str) -> list:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    log_dir: str = "logs",
    environment: str = "development",
) -> None:
    """
    Configure structured logging for the server process.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format ("json" or "console")
        log_file: Optional log file name (if None, logs to stdout)
        log_dir: Directory for log files (default: "logs")
        environment: Deployment environment; development also mirrors
            file logs to stdout
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=_build_processors(log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    # Repeated configuration (tests, reloads) must not stack handlers
    root_logger.handlers = []

    handlers = []
    if log_file:
        log_path = Path(log_dir)
        log_path.mkdir(exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_path / log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
            )
        )
        if environment == "development":
            handlers.append(logging.StreamHandler(sys.stdout))
    else:
        handlers.append(logging.StreamHandler(sys.stdout))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(handler)


def get_logger(name: str) -> Any:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
