"""
Early process initialization.

Runs before the application is created:
1. Load environment variables from `.env`
2. Initialize Sentry error tracking
3. Configure structured logging
"""
from dotenv import load_dotenv

from comercialhg.config.sentry import init_sentry
from comercialhg.config.settings import Settings, get_settings
from comercialhg.utils.logger import configure_logging, get_logger


def setup_application() -> Settings:
    """
    Initialize environment, error tracking and logging.

    Returns:
        The process settings, read after `.env` is loaded
    """
    load_dotenv()

    init_sentry()

    settings = get_settings()
    configure_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        log_dir=settings.log_dir,
        environment=settings.environment,
    )

    get_logger(__name__).info(
        "Environment loaded",
        environment=settings.environment,
        port=settings.port,
    )
    return settings
