"""
Startup sequencing, shutdown coordination and process-level fault hooks.

Startup is sequential and fail-fast:
1. Verify the data store answers (never bind on failure)
2. Resolve and install the security header provider
3. Bind the listener and log readiness

Nothing is listening until step 3, so no response can leave the process
without the hardening headers.
"""
import asyncio
import logging
import os
import signal
import sys
import threading
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

import uvicorn
from fastapi import FastAPI

from comercialhg.api.middleware.header_policy import (
    ProviderStrategy,
    install_security_headers,
    resolve_header_policy,
)
from comercialhg.api.routes.health import HEALTH_PATH
from comercialhg.config.database import verify_connection
from comercialhg.config.settings import Settings
from comercialhg.utils.logger import get_logger

logger = get_logger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class CoordinatedServer(uvicorn.Server):
    """uvicorn server whose signals belong to the `ShutdownCoordinator`."""

    def __init__(self, config: uvicorn.Config, on_ready: Optional[Callable[[], None]] = None):
        super().__init__(config)
        self.on_ready = on_ready

    def install_signal_handlers(self) -> None:
        pass

    @contextmanager
    def capture_signals(self):
        yield

    async def startup(self, sockets=None) -> None:
        await super().startup(sockets=sockets)
        if self.started and self.on_ready is not None:
            self.on_ready()


def build_server(
    app: FastAPI, settings: Settings, on_ready: Optional[Callable[[], None]] = None
) -> CoordinatedServer:
    """Create the uvicorn server for the configured host and port."""
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        lifespan="on",
        # Requests are logged by the pipeline; uvicorn keeps its own loggers
        access_log=False,
        log_config=None,
        timeout_graceful_shutdown=settings.shutdown_grace_seconds or None,
    )
    return CoordinatedServer(config, on_ready=on_ready)


def hard_exit(status: int) -> None:
    """Flush log output and end the process at once, without unwinding."""
    for handler in logging.getLogger().handlers:
        handler.flush()
    sys.stdout.flush()
    sys.stderr.flush()
    os._exit(status)


class ShutdownCoordinator:
    """
    Reacts to SIGTERM and SIGINT on behalf of the listening server.

    With no grace period the process exits with status 0 at once: the
    listener closes with the process and in-flight requests, including
    handlers still running in worker threads, are abandoned. With a grace
    period the server stops accepting and in-flight requests get up to
    that long to finish. A second signal always exits at once, and so
    does a signal that arrives before the server exists.
    """

    def __init__(
        self,
        grace_period: float = 0,
        exit_process: Callable[[int], Any] = hard_exit,
    ):
        self.grace_period = grace_period
        self.exit_process = exit_process
        self.server: Optional[uvicorn.Server] = None
        self.shutting_down = False

    def attach(self, server: uvicorn.Server) -> None:
        self.server = server

    def install(self, loop: asyncio.AbstractEventLoop) -> None:
        """Route the termination signals to this coordinator."""
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig)
            except NotImplementedError:
                # Event loops without signal support (Windows)
                signal.signal(
                    sig,
                    lambda signum, frame: loop.call_soon_threadsafe(
                        self.request_shutdown, signal.Signals(signum)
                    ),
                )

    def request_shutdown(self, sig: signal.Signals) -> None:
        logger.info("Shutdown signal received", signal=sig.name)

        if self.server is None or self.shutting_down or not self.grace_period:
            self.exit_process(0)
            return

        logger.info("Draining in-flight requests", grace_seconds=self.grace_period)
        self.shutting_down = True
        self.server.should_exit = True


class StartupSequencer:
    """Run the startup steps in order, then serve until shutdown."""

    def __init__(
        self,
        app: FastAPI,
        settings: Settings,
        probe: Callable[[], Awaitable[None]] = verify_connection,
        strategies: Optional[Iterable[ProviderStrategy]] = None,
        server_factory: Callable[..., uvicorn.Server] = build_server,
        coordinator: Optional[ShutdownCoordinator] = None,
    ):
        self.app = app
        self.settings = settings
        self.probe = probe
        self.strategies = strategies
        self.server_factory = server_factory
        self.coordinator = coordinator or ShutdownCoordinator(settings.shutdown_grace_seconds)

    def log_ready(self) -> None:
        logger.info(
            "Server listening",
            port=self.settings.port,
            environment=self.settings.environment,
            health=HEALTH_PATH,
            frontend=str(self.settings.frontend_path),
        )

    async def prepare(self) -> uvicorn.Server:
        """
        Verify dependencies and install security headers.

        Raises:
            DatabaseUnavailableError: If the data store probe fails
            HeaderPolicyResolutionError: If no header provider can be resolved
        """
        await self.probe()

        policy = await resolve_header_policy(self.strategies)
        install_security_headers(self.app, policy)

        server = self.server_factory(self.app, self.settings, on_ready=self.log_ready)
        self.coordinator.attach(server)
        return server

    async def start(self) -> None:
        self.coordinator.install(asyncio.get_running_loop())
        install_async_exception_handler(asyncio.get_running_loop())

        server = await self.prepare()
        await server.serve()
        logger.info("Server stopped")


async def serve(app: FastAPI, settings: Settings) -> None:
    await StartupSequencer(app, settings).start()


def handle_async_exception(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
    """Log an error nobody awaited; the process keeps running."""
    exc = context.get("exception")
    logger.error(
        "Unhandled async error",
        message=context.get("message"),
        error=repr(exc) if exc is not None else None,
        exc_info=exc,
    )


def install_async_exception_handler(loop: asyncio.AbstractEventLoop) -> None:
    loop.set_exception_handler(handle_async_exception)


def handle_uncaught_exception(exc_type, exc, tb, exit_process: Callable[[int], Any] = hard_exit) -> None:
    """Log an uncaught exception and terminate at once with status 1."""
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc, tb)
        return
    logger.critical("Uncaught exception", error=repr(exc), exc_info=(exc_type, exc, tb))
    exit_process(1)


def handle_uncaught_thread_exception(args: threading.ExceptHookArgs) -> None:
    if args.exc_type is SystemExit:
        return
    handle_uncaught_exception(args.exc_type, args.exc_value, args.exc_traceback)


def install_process_hooks() -> None:
    """Make uncaught exceptions fatal for the whole process."""
    sys.excepthook = handle_uncaught_exception
    threading.excepthook = handle_uncaught_thread_exception
