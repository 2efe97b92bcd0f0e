"""Innermost stage turning unexpected handler exceptions into responses.

Starlette runs a catch-all ``Exception`` handler from its outermost
server-error layer, so its response would skip every pipeline stage.
Answering here instead sends the 500 back out through request logging,
CORS and the security headers like any other response.
"""
from typing import Awaitable, Callable

from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from comercialhg.utils.errors import general_exception_handler

ExceptionHandler = Callable[[Request, Exception], Awaitable[Response]]


class ErrorFunnelMiddleware:
    """Answer handler exceptions with the uniform 500 response."""

    def __init__(self, app: ASGIApp, handler: ExceptionHandler = general_exception_handler) -> None:
        self.app = app
        self.handler = handler

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_tracking(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_tracking)
        except Exception as exc:
            # A half-sent response cannot be replaced
            if response_started:
                raise
            response = await self.handler(Request(scope, receive), exc)
            await response(scope, receive, send)
