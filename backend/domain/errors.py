"""
Error types shared across stores, services and routes.
"""


class TrackerError(Exception):
    """Base class for places tracker errors."""


class NotFoundError(TrackerError):
    """Unknown id on update/delete."""


class ConflictError(TrackerError):
    """A place with the same (name, address) already exists."""


class ValidationError(TrackerError):
    """A required field is missing or malformed."""


class TransientNetworkError(TrackerError):
    """Geocoding or page fetch failed in a way worth retrying."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PermanentResolutionFailure(TrackerError):
    """Every resolution tier for a row came back empty."""

    def __init__(self, name: str, address: str, attempts: list[str]):
        super().__init__(f"Could not resolve {name!r} ({address!r})")
        self.name = name
        self.address = address
        self.attempts = attempts
