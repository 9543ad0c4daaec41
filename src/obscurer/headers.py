"""Location-bearing response headers and how to rewrite them.

Each target knows how to find the URL inside its raw value. Rewriting
swaps exactly that span for the obscured URL and leaves the rest of the
value (angle brackets, rel parameters) as the app wrote it.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from starlette.datastructures import MutableHeaders

from obscurer.errors import HeaderObscureError, InvalidURLError, StoreError
from obscurer.store import Store
from obscurer.transform import Obscurer, parse_url

logger = logging.getLogger("obscurer.headers")

_LINK_TARGET = re.compile(r"^<([^>]+)>")

# (start, end) of the URL within the header value, or None if absent.
Extractor = Callable[[str], tuple[int, int] | None]


def extract_whole(value: str) -> tuple[int, int] | None:
    return 0, len(value)


def extract_link(value: str) -> tuple[int, int] | None:
    """`<url>; rel=...` -> span of url, up to the first `>`."""
    match = _LINK_TARGET.match(value)
    if match is None:
        return None
    return match.span(1)


@dataclass(frozen=True)
class RewriteTarget:
    header: str
    extract: Extractor


# Evaluated in this order so the reported failure is deterministic.
# see: https://developer.mozilla.org/en-US/docs/Web/HTTP/Headers/Location
# see: https://developer.mozilla.org/en-US/docs/Web/HTTP/Headers/Content-Location
# see: https://developer.mozilla.org/en-US/docs/Web/HTTP/Headers/Link
REWRITE_TARGETS = (
    RewriteTarget("Location", extract_whole),
    RewriteTarget("Content-Location", extract_whole),
    RewriteTarget("Link", extract_link),
)


def obscure_header(
    headers: MutableHeaders,
    target: RewriteTarget,
    obscurer: Obscurer,
    store: Store,
) -> None:
    """Obscure every field of one header in place and record the mappings.

    Repeated fields (several Link lines) are each rewritten where they
    stand. Raises HeaderObscureError if a URL cannot be extracted or
    parsed, or if the store refuses a mapping.
    """
    key = target.header.lower().encode("latin-1")
    raw = headers.raw
    for i, (name, raw_value) in enumerate(raw):
        if name != key or not raw_value:
            continue
        rewritten = _obscure_value(raw_value.decode("latin-1"), target, obscurer, store)
        raw[i] = (name, rewritten.encode("latin-1"))


def _obscure_value(value: str, target: RewriteTarget, obscurer: Obscurer, store: Store) -> str:
    span = target.extract(value)
    if span is None:
        raise HeaderObscureError(target.header)
    start, end = span
    try:
        original = parse_url(value[start:end])
    except InvalidURLError as exc:
        raise HeaderObscureError(target.header) from exc

    obscured = obscurer.obscure(original)
    rewritten = value[:start] + str(obscured) + value[end:]
    logger.debug("Rewrote %s: %s -> %s", target.header, value, rewritten)

    try:
        store.put(obscured, original)
    except StoreError as exc:
        raise HeaderObscureError(target.header) from exc
    return rewritten


def obscure_headers(headers: MutableHeaders, obscurer: Obscurer, store: Store) -> None:
    """Obscure every rewrite target present; the first failure aborts."""
    for target in REWRITE_TARGETS:
        obscure_header(headers, target, obscurer, store)
