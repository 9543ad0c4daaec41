"""Obscurer gateway — FastAPI application wrapping an inner ASGI app.

The inner app is served unchanged at "/", behind the obscuring handler.
Meta routes under /_obscurer are registered first and take precedence.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.types import ASGIApp
from uvicorn.importer import import_from_string

from obscurer.config import ObscurerConfig, load_config
from obscurer.handler import ObscuringHandler
from obscurer.middleware import ObscuringMiddleware
from obscurer.routes import meta
from obscurer.store import default_store
from obscurer.transform import default_obscurer

logger = logging.getLogger("obscurer")
access_logger = logging.getLogger("obscurer.access")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: seed the store from configured mappings."""
    config: ObscurerConfig = app.state.config
    if config.mappings:
        app.state.store.load(config.mappings)
        logger.info("Seeded store with %d mappings", len(config.mappings))
    logger.info("Obscurer gateway ready (deobscure=%s)", config.deobscure)
    yield
    logger.info("Obscurer gateway shut down")


def create_app(
    config: ObscurerConfig | None = None,
    inner: ASGIApp | None = None,
) -> FastAPI:
    """Application factory.

    `inner` defaults to the app named by config.app ("module:attribute").
    """
    if config is None:
        config = load_config()
    if inner is None:
        if not config.app:
            raise ValueError("no inner app configured (set [gateway] app or OBSCURER_APP)")
        inner = import_from_string(config.app)

    app = FastAPI(
        title="Obscurer",
        description="Serves an app behind obscured, store-mapped URLs",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.obscurer = default_obscurer()
    app.state.store = default_store(stripes=config.store_stripes)

    # ── Obscuring ─────────────────────────────────────────────

    wrapper = ObscuringHandler if config.deobscure else ObscuringMiddleware
    app.add_middleware(wrapper, obscurer=app.state.obscurer, store=app.state.store)

    # ── Access log ────────────────────────────────────────────

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        start = time.monotonic()
        response = await call_next(request)
        elapsed = time.monotonic() - start
        access_logger.info(
            "%s %s %d %.3fs",
            request.method,
            request.url.path,
            response.status_code,
            elapsed,
        )
        return response

    # ── Routes ────────────────────────────────────────────────

    app.include_router(meta.router)
    app.mount("/", inner)

    return app
