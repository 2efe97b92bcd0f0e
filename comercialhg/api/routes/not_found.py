"""Fallback for API paths no resource group handled."""
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from comercialhg.api.routes.table import API_PREFIX
from comercialhg.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)

API_NOT_FOUND_MESSAGE = "Ruta API no encontrada"

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def requested_path(request: Request) -> str:
    """Path as the client sent it, query string included."""
    path = request.url.path
    if request.url.query:
        path += f"?{request.url.query}"
    return path


@router.api_route(API_PREFIX, methods=ALL_METHODS, include_in_schema=False)
@router.api_route(f"{API_PREFIX}/{{rest:path}}", methods=ALL_METHODS, include_in_schema=False)
async def api_not_found(request: Request):
    """Answer 404 for any API path the route table does not cover."""
    path = requested_path(request)
    logger.info("API route not found", method=request.method, path=path)
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": API_NOT_FOUND_MESSAGE, "path": path},
    )
