"""Split halves of the obscuring handler, for separate composition.

ObscuringMiddleware only rewrites outbound headers. DeobscuringMiddleware
only serves obscured inbound paths and evicts on 404. Stacked over the
same store, DeobscuringMiddleware(ObscuringMiddleware(app)) behaves like
ObscuringHandler(app). Do not put a full ObscuringHandler in front of
ObscuringMiddleware: both would obscure the same headers.
"""

from __future__ import annotations

import logging

from starlette.types import ASGIApp, Receive, Scope, Send

from obscurer.errors import ObscurerError
from obscurer.handler import ObscuringHandler
from obscurer.headers import obscure_headers
from obscurer.interceptor import ResponseInterceptor
from obscurer.store import Store, default_store
from obscurer.transform import Obscurer, default_obscurer

logger = logging.getLogger("obscurer.middleware")


class ObscuringMiddleware:
    """ASGI middleware obscuring URLs in Location, Content-Location and Link."""

    def __init__(
        self,
        app: ASGIApp,
        obscurer: Obscurer | None = None,
        store: Store | None = None,
    ) -> None:
        self.app = app
        self.obscurer = obscurer if obscurer is not None else default_obscurer()
        self.store = store if store is not None else default_store()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async with ResponseInterceptor(send) as interceptor:
            await self.app(scope, receive, interceptor.send)
            try:
                obscure_headers(interceptor.headers, self.obscurer, self.store)
            except ObscurerError as exc:
                logger.warning("%s %s: %s", scope.get("method", ""), scope["path"], exc)
                interceptor.fail(str(exc))


class DeobscuringMiddleware(ObscuringHandler):
    """ASGI middleware serving obscured request paths; headers untouched."""

    def __init__(self, app: ASGIApp, store: Store | None = None) -> None:
        super().__init__(app, store=store, rewrite_headers=False)
