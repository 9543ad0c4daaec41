"""Mapping store — obscured URL path to original URL.

Keys are the path of the obscured URL. Values are the full original
URL, so a lookup gives back every component the original carried.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping

from starlette.datastructures import URL

from obscurer.transform import parse_url

logger = logging.getLogger("obscurer.store")

MappingPairs = Mapping[str | URL, str | URL] | Iterable[tuple[str | URL, str | URL]]


class Store(ABC):
    """Storage contract for URL mappings.

    Implementations must be safe to call from many in-flight requests at
    once without external locking. Backend failures surface as
    StoreError; a missing key is never an error.
    """

    @abstractmethod
    def put(self, obscured: URL, original: URL) -> None:
        """Insert the mapping unless the obscured key is already present."""

    @abstractmethod
    def get(self, obscured: URL) -> URL | None:
        """Return the original URL for obscured, or None."""

    @abstractmethod
    def remove(self, obscured: URL) -> None:
        """Delete the mapping for obscured if there is one."""

    @abstractmethod
    def clear(self) -> None:
        """Delete every mapping."""

    @abstractmethod
    def size(self) -> int:
        """Number of mappings currently held."""

    def load(self, mappings: MappingPairs) -> None:
        """Put every (obscured, original) pair, stopping at the first error.

        Accepts a mapping or an iterable of pairs; strings are parsed.
        Pairs stored before a failure stay stored.
        """
        pairs = mappings.items() if isinstance(mappings, Mapping) else mappings
        count = 0
        for obscured, original in pairs:
            self.put(parse_url(obscured), parse_url(original))
            count += 1
        logger.debug("Loaded %d mappings", count)


class MemoryStore(Store):
    """In-memory store with lock striping.

    Each key hashes to one of `stripes` buckets, each guarded by its own
    lock, so requests touching unrelated keys do not serialize.
    """

    def __init__(self, stripes: int = 16) -> None:
        if stripes < 1:
            raise ValueError("stripes must be at least 1")
        self._locks = [threading.Lock() for _ in range(stripes)]
        self._buckets: list[dict[str, URL]] = [{} for _ in range(stripes)]

    @property
    def stripes(self) -> int:
        return len(self._locks)

    def _stripe(self, key: str) -> int:
        return hash(key) % len(self._locks)

    def put(self, obscured: URL, original: URL) -> None:
        key = obscured.path
        i = self._stripe(key)
        with self._locks[i]:
            bucket = self._buckets[i]
            if key in bucket:
                return
            bucket[key] = original
        logger.debug("Mapped %s -> %s", key, original)

    def get(self, obscured: URL) -> URL | None:
        key = obscured.path
        i = self._stripe(key)
        with self._locks[i]:
            return self._buckets[i].get(key)

    def remove(self, obscured: URL) -> None:
        key = obscured.path
        i = self._stripe(key)
        with self._locks[i]:
            self._buckets[i].pop(key, None)

    def clear(self) -> None:
        for lock, bucket in zip(self._locks, self._buckets):
            with lock:
                bucket.clear()

    def size(self) -> int:
        total = 0
        for lock, bucket in zip(self._locks, self._buckets):
            with lock:
                total += len(bucket)
        return total


def default_store(stripes: int = 16) -> Store:
    """Factory for a fresh, unshared in-memory store."""
    return MemoryStore(stripes=stripes)
