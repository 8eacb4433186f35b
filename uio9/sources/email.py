"""Email sources for UIO9.

An email attribute-task makes one call per breach lookup page plus a public
forum scan per community site.  Breach targets are plain descriptors of
public lookup pages; no breach dataset is queried directly.
"""

from __future__ import annotations

from typing import List

from uio9.core.data_models import Attribute, Confidence
from uio9.core.governor import AdmissionGovernor
from uio9.core.http_client import AsyncHTTPClient
from uio9.sources.base import ProfileAdapter, SearchPageAdapter, SourceAdapter, Target
from uio9.sources.web import DUCKDUCKGO_PATTERN, site_search_target


def default_breach_targets() -> List[Target]:
    """Return the breach lookup pages checked for an email."""

    def breach(name: str, label: str, url_template: str, marker: str) -> Target:
        return Target(
            name=name,
            label=label,
            url_template=url_template,
            positive_markers=(marker,),
            confidence=Confidence.HIGH,
            title_template="Email Breach Found: {value}",
            description_template="Email found in data breach database on {label}",
            last_seen="Breach record",
        )

    return [
        breach(
            "haveibeenpwned",
            "Have I Been Pwned",
            "https://haveibeenpwned.com/unifiedsearch/{value}",
            '"Breaches"',
        ),
        breach(
            "breachdirectory",
            "BreachDirectory",
            "https://breachdirectory.org/search?q={value}",
            "was found in",
        ),
        breach(
            "snusbase",
            "Snusbase",
            "https://snusbase.com/search?q={value}",
            "results found",
        ),
    ]


def default_forum_targets() -> List[Target]:
    """Return the community sites scanned for public mentions of an email."""

    sites = [
        ("forum_github", "GitHub", "github.com"),
        ("forum_stackoverflow", "Stack Overflow", "stackoverflow.com"),
        ("forum_reddit", "Reddit", "reddit.com"),
    ]
    targets = [
        site_search_target(
            name,
            label,
            site,
            title_template="Email Found on {label}",
            description_template="Email address {value} found in {label} discussions",
        )
        for name, label, site in sites
    ]
    targets.append(
        Target(
            name="forum_web",
            label="Forums",
            url_template="https://html.duckduckgo.com/html/?q=%22{value}%22+forum",
            pattern=DUCKDUCKGO_PATTERN,
            redirect_param="uddg",
            confidence=Confidence.MEDIUM,
            title_template="Email Found on {label}",
            description_template="Email address {value} found in {label} discussions",
            max_findings=5,
        )
    )
    return targets


def build_email_adapters(
    client: AsyncHTTPClient, governor: AdmissionGovernor
) -> List[SourceAdapter]:
    adapters: List[SourceAdapter] = [
        ProfileAdapter(target, Attribute.EMAIL, client, governor)
        for target in default_breach_targets()
    ]
    adapters.extend(
        SearchPageAdapter(target, Attribute.EMAIL, client, governor)
        for target in default_forum_targets()
    )
    return adapters
