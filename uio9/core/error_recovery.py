"""Error recovery utilities for UIO9.

Source failures never abort a search.  This module holds the retry policy the
orchestrator applies to adapter calls and the per-call outcome records that
let callers tell "nothing exists" apart from "every source failed".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from uio9.core.data_models import Query, Result
from uio9.core.errors import SourceBlocked, SourceError

logger = logging.getLogger(__name__)


class OutcomeStatus(Enum):
    """Final status of one adapter call."""

    OK = "ok"
    FAILED = "failed"
    TIMED_OUT = "timed_out"  # Abandoned at the search deadline


@dataclass
class SourceOutcome:
    """What happened when one adapter was asked about one search term."""

    source: str
    attribute: str
    term: str
    status: OutcomeStatus = OutcomeStatus.OK
    findings: int = 0
    attempts: int = 0
    error_type: Optional[str] = None
    message: Optional[str] = None
    retry_after: Optional[float] = None  # Seconds a blocking source asked us to wait
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status is OutcomeStatus.OK

    def record_error(self, exc: BaseException) -> None:
        self.status = OutcomeStatus.FAILED
        self.error_type = type(exc).__name__
        self.message = exc.message if isinstance(exc, SourceError) else str(exc)
        if isinstance(exc, SourceBlocked):
            self.retry_after = exc.retry_after

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "source": self.source,
            "attribute": self.attribute,
            "term": self.term,
            "status": self.status.value,
            "findings": self.findings,
            "attempts": self.attempts,
            "error_type": self.error_type,
            "message": self.message,
            "retry_after": self.retry_after,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


@dataclass
class SearchReport:
    """Results of one search together with per-source outcomes."""

    query: Query
    results: List[Result] = field(default_factory=list)
    outcomes: List[SourceOutcome] = field(default_factory=list)
    timed_out: bool = False
    raw_findings: int = 0
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None

    @property
    def failed_sources(self) -> List[str]:
        return sorted({o.source for o in self.outcomes if not o.succeeded})

    @property
    def is_complete(self) -> bool:
        """Check if every adapter call finished without error."""
        return all(o.succeeded for o in self.outcomes)

    @property
    def is_partial(self) -> bool:
        """Check if some adapter calls failed but we still have results."""
        return not self.is_complete and len(self.results) > 0

    @property
    def all_failed(self) -> bool:
        """Check if there were adapter calls and none of them succeeded."""
        return bool(self.outcomes) and not any(o.succeeded for o in self.outcomes)

    @property
    def success_rate(self) -> float:
        """Fraction of adapter calls that succeeded."""
        if not self.outcomes:
            return 0.0
        return sum(1 for o in self.outcomes if o.succeeded) / len(self.outcomes)

    @property
    def elapsed_seconds(self) -> float:
        end = self.end_time or datetime.now(timezone.utc)
        return (end - self.start_time).total_seconds()

    def mark_complete(self) -> None:
        """Mark the search as complete."""
        self.end_time = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "query": self.query.to_dict(),
            "result_count": len(self.results),
            "raw_findings": self.raw_findings,
            "timed_out": self.timed_out,
            "is_complete": self.is_complete,
            "is_partial": self.is_partial,
            "all_failed": self.all_failed,
            "success_rate": self.success_rate,
            "failed_sources": self.failed_sources,
            "elapsed_seconds": self.elapsed_seconds,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class RetryPolicy:
    """Retry settings for adapter calls.

    Blocked sources are never retried: asking again only makes the block
    last longer.  Timeouts, unavailability and unexpected errors are retried
    with exponential backoff.
    """

    max_retries: int = 1
    base_delay: float = 0.5
    max_delay: float = 10.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")

    def is_retryable(self, exc: BaseException) -> bool:
        return not isinstance(exc, SourceBlocked)

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
