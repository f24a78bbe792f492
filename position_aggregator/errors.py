"""Error taxonomy for position fetching.

Sources classify their own failures into :class:`TransientSourceError`
(worth retrying) or :class:`DataFormatError` (not worth retrying). The
orchestrator only surfaces one of the top-level kinds to its caller.
"""
from __future__ import annotations

from typing import Sequence

from .models import SourceType


class PositionFetchError(Exception):
    """Base class for every error the aggregator raises on purpose."""


class ValidationError(PositionFetchError):
    """Caller input is missing or malformed."""


class ConfigurationError(PositionFetchError):
    """No usable source strategy or adapter for a protocol/network pair."""


class SourceError(PositionFetchError):
    """A single data source failed."""

    def __init__(self, message: str, source: SourceType | None = None) -> None:
        super().__init__(message)
        self.source = source

    def __str__(self) -> str:
        message = super().__str__()
        if self.source is not None:
            return f"[{self.source.value}] {message}"
        return message


class TransientSourceError(SourceError):
    """Timeout, rate limit or temporary unavailability."""


class DataFormatError(SourceError):
    """The source answered but the payload could not be decoded."""


class AllSourcesFailedError(PositionFetchError):
    """Every configured source failed; ``causes`` keeps attempt order."""

    def __init__(self, causes: Sequence[tuple[SourceType, BaseException]]) -> None:
        self.causes = list(causes)
        summary = "; ".join(f"{source.value}: {error}" for source, error in self.causes)
        super().__init__(f"All {len(self.causes)} data sources failed ({summary})")


class FetchCancelledError(PositionFetchError):
    """The caller's deadline expired before a source succeeded."""


_RATE_LIMIT_MARKERS = (
    "rate limit",
    "too many requests",
    "compute units",
    "429",
)


def is_rate_limit_error(error: BaseException) -> bool:
    """Detect provider rate limiting from an exception's status or text."""
    if getattr(error, "status", None) == 429:
        return True
    text = str(error).lower()
    return any(marker in text for marker in _RATE_LIMIT_MARKERS)
