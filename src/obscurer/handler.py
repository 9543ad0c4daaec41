"""Obscuring handler — serves obscured URLs and obscures outbound ones.

Wraps an ASGI app. Inbound request paths found in the store are
replaced by their originals before the app sees them, and a 404 for an
obscured URL evicts its mapping. Unless told otherwise, outbound
Location, Content-Location and Link headers are obscured before the
client sees them, and the store learns each new mapping.
"""

from __future__ import annotations

import logging
from urllib.parse import unquote

from starlette.datastructures import URL
from starlette.types import ASGIApp, Receive, Scope, Send

from obscurer.errors import ObscurerError, RemovalError, StoreError
from obscurer.headers import obscure_headers
from obscurer.interceptor import ResponseInterceptor
from obscurer.store import Store, default_store
from obscurer.transform import Obscurer, default_obscurer

logger = logging.getLogger("obscurer.handler")


class ObscuringHandler:
    """ASGI wrapper handling requests with obscured URLs.

    Works standalone or via Starlette's add_middleware:

        app.add_middleware(ObscuringHandler, obscurer=MD5Obscurer(), store=store)

    Omitted collaborators get fresh defaults; nothing is shared between
    handlers unless the caller passes the same instance.

    With rewrite_headers=False only the inbound half runs, for stacking
    in front of an ObscuringMiddleware that owns the outbound half.
    """

    def __init__(
        self,
        app: ASGIApp,
        obscurer: Obscurer | None = None,
        store: Store | None = None,
        rewrite_headers: bool = True,
    ) -> None:
        self.app = app
        self.rewrite_headers = rewrite_headers
        self.obscurer = obscurer if obscurer is not None else default_obscurer()
        self.store = store if store is not None else default_store()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # The URL the client asked for. Mappings are keyed by it, so it is
        # what a 404 must evict, even after deobscuring.
        requested = URL(scope=scope)
        original = self.store.get(requested)
        if original is not None:
            logger.debug("Deobscured %s -> %s", requested.path, original.path)
            scope = dict(scope)
            scope["path"] = unquote(original.path)
            scope["raw_path"] = original.path.encode("utf-8")

        async with ResponseInterceptor(send) as interceptor:
            await self.app(scope, receive, interceptor.send)
            try:
                self._post_process(requested, original is not None, interceptor)
            except ObscurerError as exc:
                logger.warning(
                    "%s %s: %s", scope.get("method", ""), requested.path, exc,
                    exc_info=exc.__cause__ is not None,
                )
                interceptor.fail(str(exc))

    def _post_process(
        self, requested: URL, deobscured: bool, interceptor: ResponseInterceptor
    ) -> None:
        if interceptor.status == 404:
            try:
                self.store.remove(requested)
            except StoreError as exc:
                raise RemovalError() from exc
            if deobscured:
                logger.info("Evicted mapping for %s after 404", requested.path)

        if self.rewrite_headers:
            obscure_headers(interceptor.headers, self.obscurer, self.store)
