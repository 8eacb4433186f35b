"""Source adapter contract and the two HTTP adapter shapes UIO9 ships.

Every adapter answers one question: given one query attribute value, which
findings does this source hold?  ``lookup`` is an async generator yielding
zero or more :class:`~uio9.core.data_models.Finding` objects, or raises one
of :class:`SourceUnavailable`, :class:`SourceBlocked` or
:class:`SourceTimeout`.  Adapters never retry, and every outbound attempt is
made while holding an admission permit.
"""

from __future__ import annotations

import html
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Dict, Optional, Sequence
from urllib.parse import parse_qs, quote, urlparse

import httpx

from uio9.core.data_models import Attribute, Confidence, Finding
from uio9.core.governor import AdmissionGovernor
from uio9.core.http_client import ABSENT_STATUS_CODES, AsyncHTTPClient
from uio9.utils.validators import validate_url

_TAG_RE = re.compile(r"<[^>]+>")

# Finding fields that carry the queried identity, per attribute
IDENTITY_FIELDS = {
    Attribute.USERNAME: "username",
    Attribute.EMAIL: "email",
    Attribute.PHONE: "phone",
    Attribute.NAME: "name",
}


@dataclass(frozen=True)
class Target:
    """Descriptor for one outbound endpoint.

    ``url_template`` receives the URL-encoded value as ``{value}``.  For
    profile checks ``pattern`` must capture the handle from the built URL; for
    search pages it matches result links, with a ``url`` (and optionally a
    ``title``) named group.
    """

    name: str
    url_template: str
    label: str = ""
    pattern: Optional[str] = None
    positive_markers: Sequence[str] = ()
    negative_markers: Sequence[str] = ()
    headers: Optional[Dict[str, str]] = None
    confidence: Confidence = Confidence.MEDIUM
    title_template: str = "{label}: {value}"
    description_template: str = ""
    last_seen: str = ""
    redirect_param: Optional[str] = None
    max_findings: int = 10

    @property
    def display_name(self) -> str:
        return self.label or self.name

    def build_url(self, value: str) -> str:
        return self.url_template.format(value=quote(value, safe=""))

    def compiled_pattern(self) -> Optional[re.Pattern]:
        return re.compile(self.pattern, re.IGNORECASE | re.DOTALL) if self.pattern else None

    def render(self, template: str, value: str) -> str:
        return template.format(label=self.display_name, value=value)


class SourceAdapter(ABC):
    """Capability every source must provide to the orchestrator."""

    def __init__(self, name: str, attribute: Attribute, governor: AdmissionGovernor) -> None:
        self.name = name
        self.attribute = attribute
        self.governor = governor
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def lookup(self, value: str) -> AsyncIterator[Finding]:
        """Yield findings for ``value``; implementations are async generators."""
        raise NotImplementedError

    def attempt(self):
        """Scope one outbound attempt to an admission permit."""
        return self.governor.permit()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, attribute={self.attribute.value})"


class HTTPSourceAdapter(SourceAdapter):
    """Shared plumbing for adapters backed by one :class:`Target`."""

    def __init__(
        self,
        target: Target,
        attribute: Attribute,
        client: AsyncHTTPClient,
        governor: AdmissionGovernor,
    ) -> None:
        super().__init__(target.name, attribute, governor)
        self.target = target
        self.client = client

    async def _fetch(self, url: str) -> httpx.Response:
        async with self.attempt():
            return await self.client.get(url, source=self.name, headers=self.target.headers)

    def _finding(self, value: str, url: str, title: Optional[str] = None) -> Finding:
        identity = {}
        field_name = IDENTITY_FIELDS.get(self.attribute)
        if field_name:
            identity[field_name] = value
        return Finding(
            title=title or self.target.render(self.target.title_template, value),
            description=self.target.render(self.target.description_template, value),
            last_seen=self.target.last_seen,
            url=url,
            source=self.target.display_name,
            platform=self.target.display_name,
            confidence=self.target.confidence,
            attribute=self.attribute,
            **identity,
        )


class ProfileAdapter(HTTPSourceAdapter):
    """Checks whether a profile or listing page exists for a value."""

    def accepts(self, value: str) -> bool:
        """Return False when the value cannot be a valid handle on this site."""
        pattern = self.target.compiled_pattern()
        if pattern is None:
            return True
        match = pattern.search(self.target.build_url(value))
        return bool(match) and match.group(1) == quote(value, safe="")

    async def lookup(self, value: str) -> AsyncIterator[Finding]:
        if not self.accepts(value):
            self.logger.debug("%s: '%s' is not a valid handle, skipping", self.name, value)
            return

        url = self.target.build_url(value)
        response = await self._fetch(url)
        if not self.indicates_presence(response):
            return
        yield self._finding(value, url)

    def indicates_presence(self, response: httpx.Response) -> bool:
        """Decide whether a response indicates the value exists on the site."""
        if response.status_code in ABSENT_STATUS_CODES:
            return False

        body = response.text or ""
        if self.target.negative_markers and any(
            marker in body for marker in self.target.negative_markers
        ):
            return False
        if self.target.positive_markers:
            return any(marker in body for marker in self.target.positive_markers)
        return response.status_code < 400


class SearchPageAdapter(HTTPSourceAdapter):
    """Scans a search results page and yields one finding per matched link."""

    async def lookup(self, value: str) -> AsyncIterator[Finding]:
        pattern = self.target.compiled_pattern()
        if pattern is None:
            raise ValueError(f"Search page target '{self.name}' has no pattern")

        response = await self._fetch(self.target.build_url(value))
        if response.status_code in ABSENT_STATUS_CODES:
            return

        seen = set()
        for match in pattern.finditer(response.text or ""):
            groups = match.groupdict()
            link = self._resolve_link(groups.get("url") or match.group(1))
            if not link or link in seen or not validate_url(link).valid:
                continue
            seen.add(link)
            title = groups.get("title")
            if title:
                title = html.unescape(_TAG_RE.sub("", title)).strip() or None
            yield self._finding(value, link, title=title)
            if len(seen) >= self.target.max_findings:
                break

    def _resolve_link(self, raw: str) -> str:
        link = html.unescape(raw).strip()
        if link.startswith("//"):
            link = "https:" + link
        if self.target.redirect_param:
            wrapped = parse_qs(urlparse(link).query).get(self.target.redirect_param)
            if wrapped:
                link = wrapped[0]
        return link
