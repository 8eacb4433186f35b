"""Tests for the search orchestrator."""

from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence

import pytest

from uio9.core.config import Config
from uio9.core.data_models import Attribute, Confidence, Finding, Query
from uio9.core.error_recovery import OutcomeStatus, RetryPolicy
from uio9.core.errors import EmptyQueryError, SourceBlocked, SourceTimeout, SourceUnavailable
from uio9.core.governor import AdmissionGovernor
from uio9.core.orchestrator import SearchOrchestrator
from uio9.sources.base import IDENTITY_FIELDS, SourceAdapter
from uio9.sources.registry import SourceRegistry


class ScriptedAdapter(SourceAdapter):
    """Adapter whose behaviour is fixed by the test."""

    def __init__(
        self,
        name: str,
        attribute: Attribute,
        governor: AdmissionGovernor,
        urls: Sequence[str] = (),
        *,
        error: Optional[Exception] = None,
        fail_times: int = 0,
        delay: float = 0.0,
        hang: bool = False,
        confidence: Confidence = Confidence.LOW,
    ) -> None:
        super().__init__(name, attribute, governor)
        self.urls = list(urls)
        self.error = error
        self.fail_times = fail_times
        self.delay = delay
        self.hang = hang
        self.confidence = confidence
        self.calls: List[str] = []
        self.completed = 0

    async def lookup(self, value):
        self.calls.append(value)
        attempt = len(self.calls)
        async with self.attempt():
            if self.delay:
                await asyncio.sleep(self.delay)
            for url in self.urls:
                identity = {}
                if self.attribute in IDENTITY_FIELDS:
                    identity[IDENTITY_FIELDS[self.attribute]] = value
                yield Finding(
                    title=f"{self.name}: {value}",
                    url=url,
                    source=self.name,
                    confidence=self.confidence,
                    attribute=self.attribute,
                    **identity,
                )
            if self.hang:
                await asyncio.sleep(30)
            if self.error is not None and (self.fail_times == 0 or attempt <= self.fail_times):
                raise self.error
            self.completed += 1


@pytest.fixture
def governor():
    return AdmissionGovernor(requests_per_minute=1000, max_concurrent=2)


def make_orchestrator(*adapters, **kwargs):
    kwargs.setdefault("retry_policy", RetryPolicy(max_retries=0, base_delay=0))
    return SearchOrchestrator(SourceRegistry(adapters), **kwargs)


class TestEmptyQuery:
    """Tests for the empty query short-circuit."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", [Query(), Query(name="   "), None])
    async def test_empty_query_rejected_before_any_call(self, governor, query):
        """Test that an empty query fails without touching adapters or the governor."""
        adapter = ScriptedAdapter("github", Attribute.USERNAME, governor, ["https://a.test"])
        orchestrator = make_orchestrator(adapter)

        with pytest.raises(EmptyQueryError):
            await orchestrator.search(query)

        assert adapter.calls == []
        assert governor.get_stats()["requests"] == 0

    def test_empty_query_error_is_value_error(self):
        """Test that callers catching ValueError also catch empty queries."""
        assert issubclass(EmptyQueryError, ValueError)


class TestSearch:
    """Tests for fan-out and result merging."""

    @pytest.mark.asyncio
    async def test_username_fans_out_to_every_platform(self, governor):
        """Test one adapter call per registered platform."""
        adapters = [
            ScriptedAdapter(name, Attribute.USERNAME, governor, [f"https://{name}.test/alice01"])
            for name in ("github", "reddit", "tiktok")
        ]
        orchestrator = make_orchestrator(*adapters)

        results = await orchestrator.search(Query(username="alice01"))

        assert {r.source for r in results} == {"github", "reddit", "tiktok"}
        assert all(adapter.calls == ["alice01"] for adapter in adapters)
        # Three findings share the username, so each has two corroborators
        assert all(r.confidence is Confidence.HIGH for r in results)

    @pytest.mark.asyncio
    async def test_one_task_per_present_attribute(self, governor):
        """Test that only attributes carrying a value are searched."""
        username = ScriptedAdapter("github", Attribute.USERNAME, governor, ["https://g.test"])
        email = ScriptedAdapter("hibp", Attribute.EMAIL, governor, ["https://h.test"])
        phone = ScriptedAdapter("whitepages", Attribute.PHONE, governor, ["https://w.test"])
        orchestrator = make_orchestrator(username, email, phone)

        report = await orchestrator.search_with_report(
            Query(username="alice01", email="alice@example.com")
        )

        assert username.calls == ["alice01"]
        assert email.calls == ["alice@example.com"]
        assert phone.calls == []
        assert {o.attribute for o in report.outcomes} == {"username", "email"}
        assert report.is_complete

    @pytest.mark.asyncio
    async def test_name_expanded_into_terms(self, governor):
        """Test that a name attribute-task queries each expanded term."""
        adapter = ScriptedAdapter("web_name", Attribute.NAME, governor)
        orchestrator = make_orchestrator(adapter)

        await orchestrator.search(Query(name="Jane Doe"))

        assert sorted(adapter.calls) == sorted(["Jane Doe", "Jane", "Doe", '"Jane Doe"'])

    @pytest.mark.asyncio
    async def test_phone_reduced_to_digits(self, governor):
        """Test that phone adapters receive digits only."""
        adapter = ScriptedAdapter("whitepages", Attribute.PHONE, governor)
        orchestrator = make_orchestrator(adapter)

        await orchestrator.search(Query(phone="+1 (555) 123-4567"))

        assert adapter.calls == ["15551234567"]

    @pytest.mark.asyncio
    async def test_attribute_without_sources_skipped(self, governor):
        """Test that an attribute with no adapters is skipped, not an error."""
        adapter = ScriptedAdapter("github", Attribute.USERNAME, governor, ["https://g.test"])
        orchestrator = make_orchestrator(adapter)

        report = await orchestrator.search_with_report(
            Query(username="alice01", image=b"\x89PNG")
        )

        assert len(report.results) == 1
        assert {o.attribute for o in report.outcomes} == {"username"}

    @pytest.mark.asyncio
    async def test_governor_limits_concurrent_calls(self):
        """Test that adapters sharing a governor never exceed its concurrency cap."""
        governor = AdmissionGovernor(requests_per_minute=1000, max_concurrent=2)
        adapters = [
            ScriptedAdapter(f"s{i}", Attribute.USERNAME, governor, delay=0.02)
            for i in range(6)
        ]
        orchestrator = make_orchestrator(*adapters)

        await orchestrator.search(Query(username="alice01"))

        stats = governor.get_stats()
        assert stats["requests"] == 6
        assert stats["peak_in_flight"] == 2
        assert governor.in_flight == 0

    @pytest.mark.asyncio
    async def test_duplicate_urls_merged(self, governor):
        """Test that findings from different sources with one URL are merged."""
        a = ScriptedAdapter("a", Attribute.USERNAME, governor, ["https://u1.test"])
        b = ScriptedAdapter("b", Attribute.USERNAME, governor, ["https://u1.test"])
        c = ScriptedAdapter("c", Attribute.USERNAME, governor, ["https://u2.test"])
        orchestrator = make_orchestrator(a, b, c)

        report = await orchestrator.search_with_report(Query(username="alice01"))

        assert report.raw_findings == 3
        assert sorted(r.url for r in report.results) == ["https://u1.test", "https://u2.test"]


class TestFailureHandling:
    """Tests for per-source failures and retries."""

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_successes(self, governor):
        """Test that failing sources do not prevent results from the others."""
        ok1 = ScriptedAdapter("ok1", Attribute.USERNAME, governor, ["https://ok1.test"])
        ok2 = ScriptedAdapter("ok2", Attribute.USERNAME, governor, ["https://ok2.test"])
        broken = ScriptedAdapter(
            "broken", Attribute.USERNAME, governor, error=SourceUnavailable("broken", "HTTP 500")
        )
        orchestrator = make_orchestrator(ok1, broken, ok2)

        report = await orchestrator.search_with_report(Query(username="alice01"))

        assert sorted(r.url for r in report.results) == ["https://ok1.test", "https://ok2.test"]
        assert report.failed_sources == ["broken"]
        assert report.is_partial
        assert not report.all_failed
        failed = next(o for o in report.outcomes if o.source == "broken")
        assert failed.status is OutcomeStatus.FAILED
        assert failed.error_type == "SourceUnavailable"
        assert failed.message == "HTTP 500"

    @pytest.mark.asyncio
    async def test_all_sources_failed(self, governor):
        """Test that every source failing yields an empty, flagged report."""
        adapters = [
            ScriptedAdapter(name, Attribute.USERNAME, governor, error=RuntimeError("parse error"))
            for name in ("a", "b")
        ]
        orchestrator = make_orchestrator(*adapters)

        report = await orchestrator.search_with_report(Query(username="alice01"))

        assert report.results == []
        assert report.all_failed
        assert report.success_rate == 0.0
        assert governor.in_flight == 0

    @pytest.mark.asyncio
    async def test_transient_failure_retried(self, governor):
        """Test that a timed-out call is retried and then succeeds."""
        adapter = ScriptedAdapter(
            "flaky",
            Attribute.USERNAME,
            governor,
            ["https://flaky.test"],
            error=SourceTimeout("flaky"),
            fail_times=1,
        )
        orchestrator = make_orchestrator(
            adapter, retry_policy=RetryPolicy(max_retries=2, base_delay=0)
        )

        report = await orchestrator.search_with_report(Query(username="alice01"))

        assert [r.url for r in report.results] == ["https://flaky.test"]
        outcome = report.outcomes[0]
        assert outcome.status is OutcomeStatus.OK
        assert outcome.attempts == 2
        assert outcome.findings == 1

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, governor):
        """Test that a call failing every attempt stops after max_retries."""
        adapter = ScriptedAdapter(
            "down", Attribute.USERNAME, governor, error=SourceUnavailable("down")
        )
        orchestrator = make_orchestrator(
            adapter, retry_policy=RetryPolicy(max_retries=2, base_delay=0)
        )

        report = await orchestrator.search_with_report(Query(username="alice01"))

        assert report.outcomes[0].attempts == 3
        assert len(adapter.calls) == 3
        assert report.outcomes[0].status is OutcomeStatus.FAILED

    @pytest.mark.asyncio
    async def test_blocked_source_not_retried(self, governor):
        """Test that a blocked source is given up on immediately."""
        adapter = ScriptedAdapter(
            "walled",
            Attribute.USERNAME,
            governor,
            error=SourceBlocked("walled", "HTTP 429", retry_after=30),
        )
        orchestrator = make_orchestrator(
            adapter, retry_policy=RetryPolicy(max_retries=3, base_delay=0)
        )

        report = await orchestrator.search_with_report(Query(username="alice01"))

        assert adapter.calls == ["alice01"]
        assert report.outcomes[0].error_type == "SourceBlocked"
        assert report.outcomes[0].retry_after == 30
        assert report.outcomes[0].to_dict()["retry_after"] == 30

    @pytest.mark.asyncio
    async def test_failed_call_contributes_nothing(self, governor):
        """Test that findings yielded before a failure are discarded."""
        adapter = ScriptedAdapter(
            "half",
            Attribute.USERNAME,
            governor,
            ["https://half.test"],
            error=SourceUnavailable("half"),
        )
        orchestrator = make_orchestrator(adapter)

        report = await orchestrator.search_with_report(Query(username="alice01"))

        assert report.results == []
        assert report.outcomes[0].findings == 0


class TestTimeout:
    """Tests for the overall search deadline."""

    @pytest.mark.asyncio
    async def test_timeout_returns_partial_results(self, governor):
        """Test that the deadline abandons slow calls but keeps collected findings."""
        fast = ScriptedAdapter("fast", Attribute.USERNAME, governor, ["https://fast.test"])
        slow = ScriptedAdapter(
            "slow", Attribute.EMAIL, governor, ["https://slow.test"], hang=True
        )
        orchestrator = make_orchestrator(fast, slow)

        report = await orchestrator.search_with_report(
            Query(username="alice01", email="alice@example.com"), timeout=0.2
        )

        assert report.timed_out
        assert sorted(r.url for r in report.results) == ["https://fast.test", "https://slow.test"]
        slow_outcome = next(o for o in report.outcomes if o.source == "slow")
        assert slow_outcome.status is OutcomeStatus.TIMED_OUT
        assert slow_outcome.findings == 1
        assert report.elapsed_seconds < 5
        # Cancelled calls gave their permits back
        assert governor.in_flight == 0

    @pytest.mark.asyncio
    async def test_default_timeout_from_orchestrator(self, governor):
        """Test that the orchestrator's own deadline applies when none is passed."""
        slow = ScriptedAdapter("slow", Attribute.USERNAME, governor, hang=True)
        orchestrator = make_orchestrator(slow, timeout=0.1)

        results = await orchestrator.search(Query(username="alice01"))

        assert results == []

    @pytest.mark.asyncio
    async def test_no_timeout_when_all_finish(self, governor):
        """Test that a search finishing in time is not flagged."""
        adapter = ScriptedAdapter("quick", Attribute.USERNAME, governor, ["https://q.test"])
        orchestrator = make_orchestrator(adapter, timeout=5)

        report = await orchestrator.search_with_report(Query(username="alice01"))

        assert not report.timed_out
        assert report.end_time is not None


    @pytest.mark.asyncio
    async def test_caller_cancellation_stops_source_calls(self):
        """Test that cancelling a search cancels its calls and returns their permits."""
        governor = AdmissionGovernor(requests_per_minute=1000, max_concurrent=1)
        adapters = [
            ScriptedAdapter(f"slow{i}", Attribute.USERNAME, governor, delay=0.3)
            for i in range(3)
        ]
        orchestrator = make_orchestrator(*adapters)

        search = asyncio.create_task(orchestrator.search(Query(username="alice01")))
        await asyncio.sleep(0.05)
        search.cancel()
        with pytest.raises(asyncio.CancelledError):
            await search

        await asyncio.sleep(0.5)

        assert [adapter.completed for adapter in adapters] == [0, 0, 0]
        assert governor.get_stats()["requests"] == 1
        assert governor.in_flight == 0
        assert governor.queued == 0

    @pytest.mark.asyncio
    async def test_wait_for_on_search_stops_source_calls(self, governor):
        """Test that an outer wait_for deadline also tears down running calls."""
        slow = ScriptedAdapter("slow", Attribute.USERNAME, governor, hang=True)
        orchestrator = make_orchestrator(slow)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(orchestrator.search(Query(username="alice01")), 0.1)

        assert governor.in_flight == 0
        assert slow.completed == 0


class TestFromConfig:
    """Tests for configuration-driven construction."""

    def test_from_config(self):
        """Test that search settings are read from configuration."""
        config = Config(load_env=False)
        config.set("search.timeout_seconds", 12)
        config.set("search.max_retries", 3)
        config.set("search.retry_backoff", 0.25)

        orchestrator = SearchOrchestrator.from_config(SourceRegistry(), config)

        assert orchestrator.timeout == 12.0
        assert orchestrator.retry_policy.max_retries == 3
        assert orchestrator.retry_policy.base_delay == 0.25

    def test_null_timeout_means_no_deadline(self):
        """Test that a null timeout disables the deadline."""
        config = Config(load_env=False)
        config.set("search.timeout_seconds", None)

        orchestrator = SearchOrchestrator.from_config(SourceRegistry(), config)

        assert orchestrator.timeout is None
