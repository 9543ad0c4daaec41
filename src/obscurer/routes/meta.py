"""Meta endpoints — health and mapping counts."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from obscurer.deps import get_store
from obscurer.store import Store

router = APIRouter(prefix="/_obscurer", tags=["meta"])


@router.get("/health")
def health():
    return {"status": "ok", "service": "obscurer"}


@router.get("/counts")
def counts(store: Store = Depends(get_store)):
    return {"mappings": store.size()}
