"""Errors raised by the obscuring pipeline.

Every error that reaches the client becomes a 500 whose body is one of
the fixed messages below.
"""

from __future__ import annotations

REMOVAL_FAILURE_MESSAGE = "obscurer: unable to remove URL from store"

HEADER_FAILURE_MESSAGES = {
    "Location": "obscurer: unable to obscure 'Location' header",
    "Content-Location": "obscurer: unable to obscure 'Content-Location' header",
    "Link": "obscurer: unable to obscure 'Link' header",
}


class ObscurerError(Exception):
    """Base class for obscurer errors."""


class StoreError(ObscurerError):
    """The mapping store backend failed."""


class InvalidURLError(ObscurerError):
    """A URL could not be parsed."""


class RemovalError(ObscurerError):
    """Evicting a mapping after a 404 failed."""

    def __init__(self) -> None:
        super().__init__(REMOVAL_FAILURE_MESSAGE)


class HeaderObscureError(ObscurerError):
    """Obscuring a location-bearing response header failed."""

    def __init__(self, header: str) -> None:
        self.header = header
        super().__init__(HEADER_FAILURE_MESSAGES[header])
