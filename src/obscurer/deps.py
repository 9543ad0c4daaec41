"""FastAPI dependencies for obscurer routes."""

from __future__ import annotations

from fastapi import Request

from obscurer.store import Store


def get_store(request: Request) -> Store:
    """Get the mapping store from app state."""
    return request.app.state.store
