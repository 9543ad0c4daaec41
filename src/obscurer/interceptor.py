"""Response interceptor — holds a response back until it has been inspected.

The wrapped app sends into the interceptor instead of the transport.
Status, headers and body are captured, left open for rewriting, and
only transmitted on flush.
"""

from __future__ import annotations

import logging

from starlette.datastructures import MutableHeaders
from starlette.types import Message, Send

logger = logging.getLogger("obscurer.interceptor")


class ResponseInterceptor:
    """Buffering stand-in for an ASGI send callable.

    Use as an async context manager: the captured response is flushed on
    exit unless an exception is propagating, in which case nothing is
    sent and the host framework's error handling takes over.
    """

    def __init__(self, send: Send) -> None:
        self._send = send
        self.status: int | None = None
        self.headers = MutableHeaders(raw=[])
        self.body = b""
        self.flushed = False

    async def __aenter__(self) -> ResponseInterceptor:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            await self.flush()

    async def send(self, message: Message) -> None:
        """Capture a response message instead of transmitting it."""
        if message["type"] == "http.response.start":
            self.status = message["status"]
            self.headers = MutableHeaders(raw=list(message.get("headers", [])))
        elif message["type"] == "http.response.body":
            self.body += message.get("body", b"")

    def fail(self, message: str) -> None:
        """Replace whatever was captured with a plain-text 500."""
        body = message.encode("utf-8")
        self.status = 500
        self.headers = MutableHeaders(
            raw=[
                (b"content-type", b"text/plain; charset=utf-8"),
                (b"content-length", str(len(body)).encode("latin-1")),
            ]
        )
        self.body = body

    async def flush(self) -> None:
        """Transmit the captured response. Only the first call sends."""
        if self.flushed:
            return
        self.flushed = True
        # No explicit status from the wrapped app means the transport
        # default applies.
        status = self.status if self.status is not None else 200
        try:
            await self._send(
                {
                    "type": "http.response.start",
                    "status": status,
                    "headers": self.headers.raw,
                }
            )
            await self._send(
                {"type": "http.response.body", "body": self.body, "more_body": False}
            )
        except OSError as exc:
            logger.warning("Failed to flush response (status %d): %s", status, exc)
