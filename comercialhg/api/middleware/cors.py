"""Allow-list CORS middleware.

Starlette's CORS middleware still attaches its shared preflight and
credentials headers to requests from unknown origins. Here an origin that
is not on the allow-list gets no access-control headers at all, and a
request without an `Origin` header passes through untouched.
"""
from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import PlainTextResponse, Response
from starlette.types import Receive, Scope, Send

from comercialhg.utils.logger import get_logger

logger = get_logger(__name__)


class AllowListCORSMiddleware(CORSMiddleware):
    """CORS for exact-match origins only, with credentials."""

    def preflight_response(self, request_headers: Headers) -> Response:
        origin = request_headers.get("origin")
        if origin is None or not self.is_allowed_origin(origin=origin):
            logger.warning("CORS preflight rejected", origin=origin)
            return PlainTextResponse("Disallowed CORS origin", status_code=400)
        return super().preflight_response(request_headers)

    async def simple_response(
        self, scope: Scope, receive: Receive, send: Send, request_headers: Headers
    ) -> None:
        origin = request_headers.get("origin")
        if origin is None:
            # Same-origin and non-browser clients
            await self.app(scope, receive, send)
            return
        if not self.is_allowed_origin(origin=origin):
            logger.info("CORS origin not allowed", origin=origin, path=scope.get("path"))
            await self.app(scope, receive, send)
            return
        await super().simple_response(scope, receive, send, request_headers)
