"""
Server process entry point.

Importing this module performs early setup and builds the application.
`run()` is the console entry: it verifies dependencies, installs the
security headers and only then opens the listener.

Exit status: 0 after SIGTERM/SIGINT, 1 when startup fails or an uncaught
exception reaches the top of the process.
"""
import asyncio
import sys

from comercialhg.core.application import create_application
from comercialhg.core.server import install_process_hooks, serve
from comercialhg.core.setup import setup_application
from comercialhg.utils.errors import DatabaseUnavailableError, HeaderPolicyResolutionError
from comercialhg.utils.logger import get_logger

settings = setup_application()

app = create_application(settings)

logger = get_logger(__name__)


def run() -> None:
    """Start the server and exit with the process status it ends in."""
    install_process_hooks()
    try:
        asyncio.run(serve(app, settings))
    except DatabaseUnavailableError as e:
        logger.critical("Could not connect to the database, server not started", error=str(e))
        sys.exit(1)
    except HeaderPolicyResolutionError as e:
        logger.critical("Could not install security headers, server not started", error=str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted before the server was ready")
        sys.exit(0)
    except SystemExit as e:
        # uvicorn exits on its own when the listener cannot be bound
        if e.code not in (0, None):
            logger.critical("Server could not start listening", status=e.code)
            sys.exit(1)
        sys.exit(0)
    except Exception as e:
        logger.critical("Unexpected error during server startup", error=str(e), exc_info=True)
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    run()
