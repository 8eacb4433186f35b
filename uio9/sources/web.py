"""Web search sources for UIO9.

Name and location attribute-tasks query a search engine's HTML results page
once per expanded search term.  Other modules reuse :func:`site_search_target`
to scan one community site for mentions of a value.
"""

from __future__ import annotations

from typing import List

from uio9.core.data_models import Attribute, Confidence
from uio9.core.governor import AdmissionGovernor
from uio9.core.http_client import AsyncHTTPClient
from uio9.sources.base import SearchPageAdapter, Target

DUCKDUCKGO_URL = "https://html.duckduckgo.com/html/?q={value}"

# Result anchors on the DuckDuckGo HTML endpoint; hrefs are /l/?uddg= redirects
DUCKDUCKGO_PATTERN = (
    r'<a[^>]*class="result__a"[^>]*href="(?P<url>[^"]+)"[^>]*>(?P<title>.*?)</a>'
)


def site_search_target(
    name: str,
    label: str,
    site: str,
    *,
    title_template: str,
    description_template: str,
    confidence: Confidence = Confidence.MEDIUM,
    last_seen: str = "",
) -> Target:
    """Build a target that searches one site for a quoted value."""
    return Target(
        name=name,
        label=label,
        url_template=f"https://html.duckduckgo.com/html/?q=%22{{value}}%22+site%3A{site}",
        pattern=DUCKDUCKGO_PATTERN,
        redirect_param="uddg",
        confidence=confidence,
        title_template=title_template,
        description_template=description_template,
        last_seen=last_seen,
        max_findings=5,
    )


def default_search_engine_target(name: str = "web_search") -> Target:
    return Target(
        name=name,
        label="DuckDuckGo",
        url_template=DUCKDUCKGO_URL,
        pattern=DUCKDUCKGO_PATTERN,
        redirect_param="uddg",
        confidence=Confidence.MEDIUM,
        title_template='Results for "{value}"',
        description_template="Public profiles and mentions found in search results",
        last_seen="Recently",
    )


def build_name_adapters(
    client: AsyncHTTPClient, governor: AdmissionGovernor
) -> List[SearchPageAdapter]:
    return [
        SearchPageAdapter(default_search_engine_target("web_name"), Attribute.NAME, client, governor)
    ]


def build_location_adapters(
    client: AsyncHTTPClient, governor: AdmissionGovernor
) -> List[SearchPageAdapter]:
    return [
        SearchPageAdapter(
            default_search_engine_target("web_location"), Attribute.LOCATION, client, governor
        )
    ]
