"""Source adapters for UIO9.

Each module provides the built-in sources for one kind of attribute:
- username: Social platform profile checks
- email: Public breach lookup pages and forum mentions
- phone: Reverse directory pages and social mentions
- web: Search engine scraping for names and locations

New sources are added by registering a :class:`SourceAdapter` with a
:class:`SourceRegistry`.
"""

from .base import (  # noqa: F401
    HTTPSourceAdapter,
    ProfileAdapter,
    SearchPageAdapter,
    SourceAdapter,
    Target,
)
from .registry import SourceRegistry, build_default_registry  # noqa: F401

__all__ = [
    "HTTPSourceAdapter",
    "ProfileAdapter",
    "SearchPageAdapter",
    "SourceAdapter",
    "Target",
    "SourceRegistry",
    "build_default_registry",
]
