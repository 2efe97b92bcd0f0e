"""Security header provider applied to every response.

The provider receives the content-security directive set and emits a
`Content-Security-Policy` header together with a fixed set of hardening
headers. Headers a handler already set are left untouched.
"""
from typing import Iterable, Mapping

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

HARDENING_HEADERS = (
    ("Cross-Origin-Opener-Policy", "same-origin"),
    ("Cross-Origin-Resource-Policy", "same-origin"),
    ("Origin-Agent-Cluster", "?1"),
    ("Referrer-Policy", "no-referrer"),
    ("Strict-Transport-Security", "max-age=15552000; includeSubDomains"),
    ("X-Content-Type-Options", "nosniff"),
    ("X-DNS-Prefetch-Control", "off"),
    ("X-Download-Options", "noopen"),
    ("X-Frame-Options", "SAMEORIGIN"),
    ("X-Permitted-Cross-Domain-Policies", "none"),
    ("X-XSS-Protection", "0"),
)


def build_content_security_policy(directives: Mapping[str, Iterable[str]]) -> str:
    """Render ``{"img-src": ("'self'", "data:")}`` as ``img-src 'self' data:``."""
    return "; ".join(
        f"{name} {' '.join(sources)}".strip()
        for name, sources in directives.items()
    )


class SecurityHeadersMiddleware:
    """Add a content-security policy and hardening headers to responses."""

    def __init__(self, app: ASGIApp, directives: Mapping[str, Iterable[str]]) -> None:
        self.app = app
        self.headers = (
            ("Content-Security-Policy", build_content_security_policy(directives)),
            *HARDENING_HEADERS,
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in self.headers:
                    if name not in headers:
                        headers[name] = value
            await send(message)

        await self.app(scope, receive, send_with_headers)
