"""The obscuring transform — one-way rewrite of URL paths.

Only the path changes. Scheme, host, query and fragment pass through
verbatim, so an obscured URL still points at the same origin.

There is no decode step. Getting back from an obscured URL to the
original is the store's job, not the transform's.
"""

from __future__ import annotations

import hashlib
import re
from abc import ABC, abstractmethod

from starlette.datastructures import URL

from obscurer.errors import InvalidURLError

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class Obscurer(ABC):
    """Maps a URL to its obscured form. Must be deterministic."""

    @abstractmethod
    def obscure(self, url: URL) -> URL:
        """Return the obscured form of url."""


class MD5Obscurer(Obscurer):
    """Replaces the path with the hex MD5 digest of the path.

    The leading slash is stripped before hashing and a single slash is
    put back, so "/hey/der" and "hey/der" obscure to the same path.
    """

    def obscure(self, url: URL) -> URL:
        trimmed = url.path.lstrip("/")
        digest = hashlib.md5(trimmed.encode("utf-8"), usedforsecurity=False)
        return url.replace(path="/" + digest.hexdigest())


def default_obscurer() -> Obscurer:
    """Factory for the default transform."""
    return MD5Obscurer()


def parse_url(value: str | URL) -> URL:
    """Parse a raw URL string, rejecting what a strict parser would.

    urlsplit is lenient: it silently drops tabs and newlines and accepts
    other control characters. A location header carrying those is a
    defect in whoever produced it, so refuse it here.
    """
    if isinstance(value, URL):
        return value
    if _CONTROL_CHARS.search(value):
        raise InvalidURLError(f"invalid control character in URL {value!r}")
    if _BAD_ESCAPE.search(value):
        raise InvalidURLError(f"invalid URL escape in {value!r}")
    url = URL(value)
    try:
        url.port
    except ValueError as exc:
        raise InvalidURLError(f"invalid port in URL {value!r}") from exc
    return url
