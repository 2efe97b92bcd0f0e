"""Front-end bundle serving with single-page-application fallback."""
from pathlib import Path
from typing import Union

from fastapi import FastAPI
from starlette.exceptions import HTTPException
from starlette.responses import Response
from starlette.staticfiles import StaticFiles
from starlette.types import Scope

from comercialhg.utils.logger import get_logger

logger = get_logger(__name__)

ENTRY_DOCUMENT = "index.html"


class SPAStaticFiles(StaticFiles):
    """
    Serve files from the build directory and fall back to the entry document.

    Any path that does not resolve to a file is answered with the bundle's
    entry document so that client-side routes survive a page reload.
    """

    def __init__(self, *, directory: Union[str, Path], entry_document: str = ENTRY_DOCUMENT, **kwargs):
        super().__init__(directory=directory, **kwargs)
        self.entry_document = entry_document

    async def get_response(self, path: str, scope: Scope) -> Response:
        try:
            return await super().get_response(path, scope)
        except HTTPException as exc:
            if exc.status_code != 404:
                raise
        return await super().get_response(self.entry_document, scope)


def mount_frontend(app: FastAPI, frontend_path: Path) -> bool:
    """
    Mount the prebuilt front-end at the site root.

    Must run after every API route is registered; the mount matches all
    remaining paths.

    Returns:
        True if the bundle directory exists and was mounted
    """
    if not frontend_path.is_dir():
        logger.warning("Frontend build not found, static serving disabled", path=str(frontend_path))
        return False

    app.mount("/", SPAStaticFiles(directory=frontend_path), name="frontend")
    logger.info("Frontend served from build directory", path=str(frontend_path))
    return True
