"""UIO9 - Multi-source OSINT search engine.

Searches public sources for a person described by any combination of name,
username, email, phone, location and image, then correlates the findings into
a deduplicated, confidence-ranked result list.
"""

__version__ = "1.0.0"
__author__ = "UIO9 Contributors"

from uio9.core.data_models import Finding, Query, Result
from uio9.core.orchestrator import SearchOrchestrator

__all__ = ["Finding", "Query", "Result", "SearchOrchestrator", "__version__"]
