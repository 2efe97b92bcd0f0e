"""Request body decoding stage.

JSON and URL-encoded bodies are read up to a fixed ceiling, decoded, and
exposed to handlers as ``request.state.body``. The raw bytes are replayed
downstream so handlers can still read the body themselves. Oversized or
undecodable bodies are answered here and never reach a handler.
"""
import json
from typing import Optional, Tuple

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from comercialhg.config.settings import DEFAULT_BODY_LIMIT_BYTES
from comercialhg.utils.errors import (
    AppError,
    MalformedBodyError,
    PayloadTooLargeError,
    TooManyParametersError,
    app_error_response,
)
from comercialhg.utils.forms import TooManyFieldsError, parse_nested_form
from comercialhg.utils.logger import get_logger

logger = get_logger(__name__)

JSON_BODY = "json"
FORM_BODY = "form"


def classify_content_type(content_type: str) -> Tuple[Optional[str], str]:
    """Return the body kind this stage decodes and the declared charset."""
    media_type, *params = [part.strip() for part in content_type.split(";")]
    media_type = media_type.lower()

    charset = "utf-8"
    for param in params:
        name, _, value = param.partition("=")
        if name.strip().lower() == "charset" and value:
            charset = value.strip().strip('"')

    if media_type == "application/json" or (
        media_type.startswith("application/") and media_type.endswith("+json")
    ):
        return JSON_BODY, charset
    if media_type == "application/x-www-form-urlencoded":
        return FORM_BODY, charset
    return None, charset


def decode_body(kind: str, body: bytes, charset: str):
    """
    Decode a buffered body; empty bodies decode to None.

    Raises:
        MalformedBodyError: If the body does not parse, nesting too deep included
        TooManyParametersError: If a form body has too many fields
    """
    if not body.strip():
        return None
    if kind == JSON_BODY:
        try:
            return json.loads(body.decode(charset))
        except (ValueError, LookupError, RecursionError) as e:
            raise MalformedBodyError() from e
    try:
        return parse_nested_form(body, encoding=charset)
    except TooManyFieldsError as e:
        raise TooManyParametersError(e.limit) from e
    except (ValueError, LookupError) as e:
        raise MalformedBodyError("Malformed form body", code="MALFORMED_FORM") from e


class BodyDecodingMiddleware:
    """Buffer, bound and decode JSON and URL-encoded request bodies."""

    def __init__(self, app: ASGIApp, limit: int = DEFAULT_BODY_LIMIT_BYTES) -> None:
        self.app = app
        self.limit = limit

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        kind, charset = classify_content_type(headers.get("content-type", ""))
        if kind is None:
            await self.app(scope, receive, send)
            return

        try:
            declared = headers.get("content-length")
            if declared is not None and declared.isdigit() and int(declared) > self.limit:
                raise PayloadTooLargeError(self.limit)

            body = await self._read_body(receive)
            if body is None:
                return
            scope.setdefault("state", {})["body"] = decode_body(kind, body, charset)
        except AppError as exc:
            logger.warning(
                "Request body rejected",
                error=exc.code,
                method=scope["method"],
                path=scope["path"],
            )
            await app_error_response(exc)(scope, receive, send)
            return

        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        await self.app(scope, replay, send)

    async def _read_body(self, receive: Receive) -> Optional[bytes]:
        """Read the whole body, or None if the client disconnected."""
        chunks = bytearray()
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                return None
            chunks.extend(message.get("body", b""))
            if len(chunks) > self.limit:
                raise PayloadTooLargeError(self.limit)
            more_body = message.get("more_body", False)
        return bytes(chunks)
