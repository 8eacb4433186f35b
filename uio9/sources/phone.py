"""Phone sources for UIO9.

Phone values reach these adapters as digits only.  Directory listings are
checked directly; social platforms are scanned through site searches.
"""

from __future__ import annotations

from typing import List

from uio9.core.data_models import Attribute, Confidence
from uio9.core.governor import AdmissionGovernor
from uio9.core.http_client import AsyncHTTPClient
from uio9.sources.base import ProfileAdapter, SearchPageAdapter, SourceAdapter, Target
from uio9.sources.web import site_search_target


def default_directory_targets() -> List[Target]:
    """Return the public phone directories checked for a number."""

    def directory(name: str, label: str, url_template: str, negative: str) -> Target:
        return Target(
            name=name,
            label=label,
            url_template=url_template,
            negative_markers=(negative,),
            confidence=Confidence.MEDIUM,
            title_template="{label} Listing: {value}",
            description_template="Phone number found in {label} database",
            last_seen="Updated recently",
        )

    return [
        directory(
            "whitepages",
            "Whitepages",
            "https://www.whitepages.com/phone/{value}",
            "No results found",
        ),
        directory(
            "truecaller",
            "Truecaller",
            "https://www.truecaller.com/search/us/{value}",
            "No results",
        ),
        directory(
            "spokeo",
            "Spokeo",
            "https://www.spokeo.com/{value}",
            "No results found",
        ),
    ]


def default_social_targets() -> List[Target]:
    """Return the social platforms scanned for profiles listing a number."""

    sites = [
        ("phone_facebook", "Facebook", "facebook.com"),
        ("phone_linkedin", "LinkedIn", "linkedin.com"),
        ("phone_twitter", "Twitter", "twitter.com"),
    ]
    return [
        site_search_target(
            name,
            label,
            site,
            title_template="{label} Profile with Phone",
            description_template="Phone number {value} associated with {label} profile",
            confidence=Confidence.LOW,
            last_seen="Profile last updated",
        )
        for name, label, site in sites
    ]


def build_phone_adapters(
    client: AsyncHTTPClient, governor: AdmissionGovernor
) -> List[SourceAdapter]:
    adapters: List[SourceAdapter] = [
        ProfileAdapter(target, Attribute.PHONE, client, governor)
        for target in default_directory_targets()
    ]
    adapters.extend(
        SearchPageAdapter(target, Attribute.PHONE, client, governor)
        for target in default_social_targets()
    )
    return adapters
