"""
Database engine and the startup reachability probe.

The request pipeline does not talk to the data store itself; resource
handler groups do. What the server needs here is a single awaitable
probe that startup runs before the listening socket is bound.

Configuration:
- DATABASE_URL: SQLAlchemy connection URL (from environment)
- DATABASE_CONNECT_TIMEOUT: seconds allowed for the probe connection
"""
from functools import lru_cache
from typing import Optional

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from comercialhg.config.settings import get_settings
from comercialhg.utils.errors import DatabaseUnavailableError
from comercialhg.utils.logger import get_logger

logger = get_logger(__name__)


def create_database_engine(
    database_url: Optional[str] = None,
    connect_timeout: Optional[int] = None,
) -> Engine:
    """
    Create the SQLAlchemy engine with pre-ping enabled.

    Args:
        database_url: Connection URL (defaults to settings.database_url)
        connect_timeout: Driver connect timeout in seconds (ignored for SQLite)
    """
    settings = get_settings()
    url = database_url or settings.database_url
    connect_args = {}
    if not url.startswith("sqlite"):
        connect_args["connect_timeout"] = connect_timeout or settings.database_connect_timeout
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


@lru_cache
def get_engine() -> Engine:
    return create_database_engine()


def _ping(engine: Engine) -> None:
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))


async def verify_connection(engine: Optional[Engine] = None) -> None:
    """
    Check that the data store answers a trivial query.

    The blocking driver call runs in the threadpool so the event loop is
    never held by a slow connect.

    Raises:
        DatabaseUnavailableError: If the engine cannot be created or the
            query fails for any reason
    """
    try:
        engine = engine or get_engine()
        await run_in_threadpool(_ping, engine)
    except (SQLAlchemyError, OSError, ImportError) as e:
        logger.error("Database connection check failed", error=str(e))
        raise DatabaseUnavailableError(f"Database unreachable: {e}") from e
    logger.info("Database connection verified")
