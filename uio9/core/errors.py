"""Exception types raised by UIO9 components."""

from __future__ import annotations

from typing import Optional


class UIO9Error(Exception):
    """Base class for UIO9 errors."""


class EmptyQueryError(UIO9Error, ValueError):
    """Raised when a query carries no attribute to search for."""

    def __init__(self, message: str = "At least one search parameter is required") -> None:
        super().__init__(message)


class SourceError(UIO9Error):
    """A source adapter could not produce findings."""

    def __init__(self, source: str, message: str = "") -> None:
        self.source = source
        self.message = message or self.__class__.__name__
        super().__init__(f"{source}: {self.message}")


class SourceUnavailable(SourceError):
    """The source could not be reached or answered with a server error."""


class SourceBlocked(SourceError):
    """The source refused the request (forbidden, throttled or challenged)."""

    def __init__(
        self, source: str, message: str = "", retry_after: Optional[float] = None
    ) -> None:
        super().__init__(source, message)
        self.retry_after = retry_after


class SourceTimeout(SourceError):
    """The source did not answer in time."""


class GovernorOverloadedError(UIO9Error):
    """Raised when a permit could not be granted before the caller's deadline."""

    def __init__(self, waited: float, timeout: float) -> None:
        self.waited = waited
        self.timeout = timeout
        super().__init__(
            f"Admission not granted within {timeout:.2f}s (waited {waited:.2f}s)"
        )
