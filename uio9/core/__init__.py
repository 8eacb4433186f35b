"""Core functionality for UIO9.

This package contains the search engine itself:
- data_models: Query, Finding and Result values
- governor: Admission control (rate budget and concurrency cap)
- orchestrator: Concurrent fan-out of a query to source adapters
- correlator: Deduplication and corroboration re-scoring
- error_recovery: Retry policy and per-source outcomes
- config, logging_setup: Configuration and logging
"""

from .data_models import Attribute, Confidence, Finding, Query, Result  # noqa: F401
from .errors import (  # noqa: F401
    EmptyQueryError,
    GovernorOverloadedError,
    SourceBlocked,
    SourceError,
    SourceTimeout,
    SourceUnavailable,
    UIO9Error,
)
from .governor import AdmissionGovernor  # noqa: F401
from .http_client import AsyncHTTPClient  # noqa: F401
from .logging_setup import configure_logging  # noqa: F401
from .config import Config, get_config, ValidationResult  # noqa: F401
from .correlator import Correlator, correlate  # noqa: F401
from .error_recovery import RetryPolicy, SearchReport, SourceOutcome  # noqa: F401
from .orchestrator import SearchOrchestrator  # noqa: F401
from .variant_generator import expand  # noqa: F401

__all__ = [
    # Models
    "Attribute",
    "Confidence",
    "Finding",
    "Query",
    "Result",
    # Errors
    "EmptyQueryError",
    "GovernorOverloadedError",
    "SourceBlocked",
    "SourceError",
    "SourceTimeout",
    "SourceUnavailable",
    "UIO9Error",
    # Engine
    "AdmissionGovernor",
    "AsyncHTTPClient",
    "Correlator",
    "correlate",
    "RetryPolicy",
    "SearchReport",
    "SourceOutcome",
    "SearchOrchestrator",
    "expand",
    # Config
    "Config",
    "get_config",
    "ValidationResult",
    "configure_logging",
]
