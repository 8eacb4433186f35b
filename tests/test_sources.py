"""Tests for the source adapters and the registry."""

from __future__ import annotations

import pytest

from uio9.core.config import Config
from uio9.core.data_models import Attribute, Confidence
from uio9.core.errors import SourceBlocked
from uio9.core.governor import AdmissionGovernor
from uio9.core.http_client import AsyncHTTPClient
from uio9.sources.base import ProfileAdapter, SearchPageAdapter, Target
from uio9.sources.email import build_email_adapters, default_breach_targets
from uio9.sources.registry import SourceRegistry, build_default_registry
from uio9.sources.username import build_username_adapters, default_platform_targets
from uio9.sources.web import DUCKDUCKGO_PATTERN

SEARCH_PAGE = """
<div class="result">
  <a rel="nofollow" class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com%2Fjane&amp;rut=abc">Jane <b>Doe</b> - Example</a>
</div>
<div class="result">
  <a rel="nofollow" class="result__a" href="https://people.example.org/janedoe">Jane Doe profile</a>
</div>
<div class="result">
  <a rel="nofollow" class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com%2Fjane&amp;rut=def">Duplicate</a>
</div>
<div class="result">
  <a rel="nofollow" class="result__a" href="http://localhost/admin">Local</a>
</div>
"""


@pytest.fixture
def governor():
    return AdmissionGovernor(requests_per_minute=100, max_concurrent=2)


def platform(name):
    return next(t for t in default_platform_targets() if t.name == name)


async def collect(adapter, value):
    return [finding async for finding in adapter.lookup(value)]


class TestTarget:
    """Tests for target descriptors."""

    def test_build_url_encodes_value(self):
        """Test that values are URL-encoded into the template."""
        target = Target(name="t", url_template="https://x.test/?q={value}")
        assert target.build_url("jane doe/x") == "https://x.test/?q=jane%20doe%2Fx"

    def test_display_name_falls_back_to_name(self):
        """Test the label fallback."""
        assert Target(name="t", url_template="").display_name == "t"
        assert Target(name="t", url_template="", label="T").display_name == "T"


class TestProfileAdapter:
    """Tests for profile existence checks."""

    @pytest.mark.asyncio
    async def test_profile_found(self, httpx_mock, governor):
        """Test that an existing profile yields one high-confidence finding."""
        httpx_mock.add_response(
            method="GET", url="https://github.com/alice01", status_code=200, text="alice01"
        )

        async with AsyncHTTPClient() as client:
            adapter = ProfileAdapter(platform("github"), Attribute.USERNAME, client, governor)
            findings = await collect(adapter, "alice01")

        assert len(findings) == 1
        finding = findings[0]
        assert finding.url == "https://github.com/alice01"
        assert finding.source == "GitHub"
        assert finding.title == "GitHub Profile: alice01"
        assert finding.username == "alice01"
        assert finding.confidence is Confidence.HIGH
        assert finding.attribute is Attribute.USERNAME
        assert governor.get_stats()["requests"] == 1
        assert governor.in_flight == 0

    @pytest.mark.asyncio
    async def test_profile_missing(self, httpx_mock, governor):
        """Test that a 404 yields nothing."""
        httpx_mock.add_response(
            method="GET", url="https://github.com/nobody", status_code=404
        )

        async with AsyncHTTPClient() as client:
            adapter = ProfileAdapter(platform("github"), Attribute.USERNAME, client, governor)
            findings = await collect(adapter, "nobody")

        assert findings == []

    @pytest.mark.asyncio
    async def test_negative_marker(self, httpx_mock, governor):
        """Test that a 'not found' page served with 200 yields nothing."""
        httpx_mock.add_response(
            method="GET",
            url="https://reddit.com/user/ghost",
            status_code=200,
            text="<p>Sorry, nobody on Reddit goes by that name.</p>",
        )

        async with AsyncHTTPClient() as client:
            adapter = ProfileAdapter(platform("reddit"), Attribute.USERNAME, client, governor)
            findings = await collect(adapter, "ghost")

        assert findings == []

    @pytest.mark.asyncio
    async def test_invalid_handle_skipped_without_request(self, governor):
        """Test that a value the platform cannot host is not requested."""
        async with AsyncHTTPClient() as client:
            adapter = ProfileAdapter(platform("twitter"), Attribute.USERNAME, client, governor)
            findings = await collect(adapter, "alice.01")

        assert findings == []
        assert governor.get_stats()["requests"] == 0

    @pytest.mark.asyncio
    async def test_blocked_raises_and_releases_permit(self, httpx_mock, governor):
        """Test that a refused request surfaces as SourceBlocked."""
        httpx_mock.add_response(
            method="GET", url="https://github.com/alice01", status_code=429
        )

        async with AsyncHTTPClient() as client:
            adapter = ProfileAdapter(platform("github"), Attribute.USERNAME, client, governor)
            with pytest.raises(SourceBlocked):
                await collect(adapter, "alice01")

        assert governor.in_flight == 0

    @pytest.mark.asyncio
    async def test_breach_page_positive_marker(self, httpx_mock, governor):
        """Test that breach pages need their positive marker to count."""
        target = next(t for t in default_breach_targets() if t.name == "breachdirectory")
        url = target.build_url("alice@example.com")
        httpx_mock.add_response(
            method="GET", url=url, status_code=200, text="alice@example.com was found in 2 breaches"
        )

        async with AsyncHTTPClient() as client:
            adapter = ProfileAdapter(target, Attribute.EMAIL, client, governor)
            findings = await collect(adapter, "alice@example.com")

        assert len(findings) == 1
        assert findings[0].email == "alice@example.com"
        assert findings[0].title == "Email Breach Found: alice@example.com"
        assert findings[0].username is None

    @pytest.mark.asyncio
    async def test_breach_page_without_marker(self, httpx_mock, governor):
        """Test that a breach page without its marker yields nothing."""
        target = next(t for t in default_breach_targets() if t.name == "breachdirectory")
        url = target.build_url("clean@example.com")
        httpx_mock.add_response(method="GET", url=url, status_code=200, text="No results")

        async with AsyncHTTPClient() as client:
            adapter = ProfileAdapter(target, Attribute.EMAIL, client, governor)
            findings = await collect(adapter, "clean@example.com")

        assert findings == []


class TestSearchPageAdapter:
    """Tests for search results page scanning."""

    def target(self, **kwargs):
        values = dict(
            name="web_name",
            label="DuckDuckGo",
            url_template="https://search.local/html/?q={value}",
            pattern=DUCKDUCKGO_PATTERN,
            redirect_param="uddg",
            title_template='Results for "{value}"',
        )
        values.update(kwargs)
        return Target(**values)

    @pytest.mark.asyncio
    async def test_result_links_become_findings(self, httpx_mock, governor):
        """Test link extraction, redirect unwrapping and deduplication."""
        httpx_mock.add_response(
            method="GET",
            url="https://search.local/html/?q=janedoe",
            status_code=200,
            text=SEARCH_PAGE,
        )

        async with AsyncHTTPClient() as client:
            adapter = SearchPageAdapter(self.target(), Attribute.NAME, client, governor)
            findings = await collect(adapter, "janedoe")

        assert [f.url for f in findings] == [
            "https://example.com/jane",
            "https://people.example.org/janedoe",
        ]
        assert findings[0].title == "Jane Doe - Example"
        assert findings[0].name == "janedoe"
        assert findings[0].source == "DuckDuckGo"

    @pytest.mark.asyncio
    async def test_max_findings(self, httpx_mock, governor):
        """Test that scanning stops at max_findings."""
        httpx_mock.add_response(
            method="GET",
            url="https://search.local/html/?q=janedoe",
            status_code=200,
            text=SEARCH_PAGE,
        )

        async with AsyncHTTPClient() as client:
            adapter = SearchPageAdapter(
                self.target(max_findings=1), Attribute.NAME, client, governor
            )
            findings = await collect(adapter, "janedoe")

        assert len(findings) == 1

    @pytest.mark.asyncio
    async def test_empty_page(self, httpx_mock, governor):
        """Test that a page with no results yields nothing."""
        httpx_mock.add_response(
            method="GET",
            url="https://search.local/html/?q=nobody",
            status_code=200,
            text="<html>No results.</html>",
        )

        async with AsyncHTTPClient() as client:
            adapter = SearchPageAdapter(self.target(), Attribute.LOCATION, client, governor)
            findings = await collect(adapter, "nobody")

        assert findings == []

    @pytest.mark.asyncio
    async def test_missing_pattern(self, governor):
        """Test that a search page target must define a pattern."""
        async with AsyncHTTPClient() as client:
            adapter = SearchPageAdapter(
                self.target(pattern=None), Attribute.NAME, client, governor
            )
            with pytest.raises(ValueError):
                await collect(adapter, "janedoe")


class TestSourceRegistry:
    """Tests for the pluggable registry."""

    def test_register_and_lookup(self, governor):
        """Test registering adapters and grouping them by attribute."""
        client = AsyncHTTPClient()
        registry = SourceRegistry(build_username_adapters(client, governor))

        assert len(registry) == 5
        assert "github" in registry
        assert registry.get("github").attribute is Attribute.USERNAME
        assert registry.attributes() == [Attribute.USERNAME]
        assert registry.for_attribute(Attribute.EMAIL) == []

    def test_duplicate_name_rejected(self, governor):
        """Test that two adapters cannot share a name."""
        client = AsyncHTTPClient()
        adapters = build_username_adapters(client, governor)
        registry = SourceRegistry(adapters)

        with pytest.raises(ValueError):
            registry.register(adapters[0])

    def test_unregister(self, governor):
        """Test removing an adapter."""
        client = AsyncHTTPClient()
        registry = SourceRegistry(build_username_adapters(client, governor))

        removed = registry.unregister("tiktok")

        assert removed.name == "tiktok"
        assert "tiktok" not in registry
        with pytest.raises(KeyError):
            registry.unregister("tiktok")

    def test_default_registry_covers_text_attributes(self, governor):
        """Test that every text attribute has built-in sources."""
        registry = build_default_registry(AsyncHTTPClient(), governor)

        assert registry.attributes() == [
            Attribute.NAME,
            Attribute.USERNAME,
            Attribute.EMAIL,
            Attribute.PHONE,
            Attribute.LOCATION,
        ]
        assert [a.name for a in registry.for_attribute(Attribute.USERNAME)] == [
            "github",
            "twitter",
            "instagram",
            "reddit",
            "tiktok",
        ]
        email_sources = registry.for_attribute(Attribute.EMAIL)
        assert len(email_sources) == len(build_email_adapters(AsyncHTTPClient(), governor))
        assert len(registry.names()) == len(set(registry.names()))

    def test_sources_disabled_by_config(self, governor):
        """Test that configuration can leave sources out."""
        config = Config(load_env=False)
        config.set("sources.tiktok.enabled", False)
        config.set("sources.snusbase.enabled", "false")

        registry = build_default_registry(AsyncHTTPClient(), governor, config)

        assert "tiktok" not in registry
        assert "snusbase" not in registry
        assert "github" in registry
