"""Error taxonomy for shortening and resolution."""

__all__ = [
    "ShortenerError",
    "InvalidInputError",
    "NotFoundError",
    "OfflineError",
    "StoreUnavailableError",
    "CodeAllocationError",
    "StoreConnectionError",
]


class ShortenerError(Exception):
    """Base class for errors surfaced by the shortening and redirect services."""


class InvalidInputError(ShortenerError, ValueError):
    """The submitted URL is empty or does not start with http:// or https://."""


class NotFoundError(ShortenerError, LookupError):
    """No record exists for the short code."""

    def __init__(self, short_code: str) -> None:
        super().__init__(f"Short code '{short_code}' not found")
        self.short_code = short_code


class OfflineError(ShortenerError):
    """The store could not be reached, so existence could not be verified."""


class StoreUnavailableError(ShortenerError):
    """A creation write could not be persisted or queued."""


class CodeAllocationError(ShortenerError):
    """Every candidate short code was already taken."""


class StoreConnectionError(ConnectionError):
    """Raised by store adapters when the backing store is unreachable.

    Adapters translate driver-specific connectivity failures into this type so
    services can tell "unreachable" apart from "absent" without importing drivers.
    """
