"""Central search orchestrator for UIO9.

The :class:`SearchOrchestrator` turns a :class:`~uio9.core.data_models.Query`
into one attribute-task per present attribute.  Each attribute-task fans out
to one adapter call per (search term, registered adapter) pair.  Everything
runs concurrently; admission is enforced by the governor permit each adapter
takes around its outbound attempts.

Per-source failures are logged and recovered locally.  Only an empty query is
fatal.  When the overall deadline expires, unfinished calls are abandoned and
whatever findings were already collected still go to the correlator.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from uio9.core.correlator import Correlator
from uio9.core.data_models import Attribute, Finding, Query, Result
from uio9.core.error_recovery import OutcomeStatus, RetryPolicy, SearchReport, SourceOutcome
from uio9.core.errors import EmptyQueryError
from uio9.core.logging_setup import log_performance
from uio9.core.variant_generator import expand
from uio9.sources.base import SourceAdapter
from uio9.sources.registry import SourceRegistry


def _describe(term: Any) -> str:
    if isinstance(term, (bytes, bytearray)):
        return f"<{len(term)} bytes>"
    return str(term)


async def _cancel_all(tasks: Iterable["asyncio.Task[Any]"]) -> None:
    """Cancel tasks and wait until every one has unwound."""
    tasks = list(tasks)
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


@dataclass
class _AdapterCall:
    """One adapter asked about one search term, and what it returned so far."""

    adapter: SourceAdapter
    attribute: Attribute
    term: Any
    outcome: SourceOutcome
    findings: List[Finding] = field(default_factory=list)
    finished: bool = False


class SearchOrchestrator:
    """Coordinates concurrent source lookups for a query."""

    def __init__(
        self,
        registry: SourceRegistry,
        *,
        correlator: Optional[Correlator] = None,
        timeout: Optional[float] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            registry: Source adapters to dispatch to
            correlator: Correlator for the merged findings
            timeout: Default overall deadline for a search in seconds
            retry_policy: Retry settings for failed adapter calls
        """
        self.registry = registry
        self.correlator = correlator or Correlator()
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_config(cls, registry: SourceRegistry, config: Any) -> "SearchOrchestrator":
        """Build an orchestrator from the ``search`` section of a config object."""
        timeout = config.get("search.timeout_seconds", 30)
        return cls(
            registry,
            timeout=float(timeout) if timeout else None,
            retry_policy=RetryPolicy(
                max_retries=int(config.get("search.max_retries", 1)),
                base_delay=float(config.get("search.retry_backoff", 0.5)),
            ),
        )

    async def search(self, query: Query, *, timeout: Optional[float] = None) -> List[Result]:
        """Search every registered source for the query's attributes.

        Parameters
        ----------
        query: Query
            The attributes to search for.
        timeout: float, optional
            Overall deadline in seconds; defaults to the orchestrator's.

        Raises
        ------
        EmptyQueryError
            If the query carries no attribute.
        """
        report = await self.search_with_report(query, timeout=timeout)
        return report.results

    async def search_with_report(
        self, query: Query, *, timeout: Optional[float] = None
    ) -> SearchReport:
        """Run a search and return results together with per-source outcomes."""
        if query is None or query.is_empty:
            raise EmptyQueryError()

        timeout = self.timeout if timeout is None else timeout
        report = SearchReport(query=query)
        plan = self._plan(query)

        self.logger.info(
            "Searching %s across %d source calls (timeout=%s)",
            ", ".join(attr.value for attr in plan) or "nothing",
            sum(len(calls) for calls in plan.values()),
            f"{timeout:.1f}s" if timeout else "none",
        )

        with log_performance("search", self.logger):
            tasks = [
                asyncio.create_task(self._run_attribute_task(attribute, calls))
                for attribute, calls in plan.items()
            ]
            try:
                if tasks:
                    _, pending = await asyncio.wait(tasks, timeout=timeout)
                    if pending:
                        report.timed_out = True
                        await _cancel_all(pending)
            except BaseException:
                # Caller cancelled the search; stop every attribute-task with it
                await _cancel_all(task for task in tasks if not task.done())
                raise

        calls = [call for attribute_calls in plan.values() for call in attribute_calls]
        findings: List[Finding] = []
        for call in calls:
            if not call.finished:
                call.outcome.status = OutcomeStatus.TIMED_OUT
                call.outcome.findings = len(call.findings)
            findings.extend(call.findings)
            report.outcomes.append(call.outcome)

        if report.timed_out:
            self.logger.warning(
                "Search deadline of %.1fs expired; %d source calls abandoned",
                timeout,
                sum(1 for c in calls if not c.finished),
            )

        report.raw_findings = len(findings)
        report.results = self.correlator.correlate(findings, query)
        report.mark_complete()

        self.logger.info(
            "Search finished: %d results from %d findings (%d/%d source calls failed)",
            len(report.results),
            len(findings),
            sum(1 for o in report.outcomes if o.status is OutcomeStatus.FAILED),
            len(report.outcomes),
        )
        return report

    def _plan(self, query: Query) -> Dict[Attribute, List[_AdapterCall]]:
        """Decompose a query into attribute-tasks and their adapter calls."""
        plan: Dict[Attribute, List[_AdapterCall]] = {}
        for attribute in query.present_attributes():
            adapters = self.registry.for_attribute(attribute)
            if not adapters:
                self.logger.warning("No sources registered for %s, skipping", attribute.value)
                continue
            terms = expand(attribute, query.value_of(attribute))
            plan[attribute] = [
                _AdapterCall(
                    adapter=adapter,
                    attribute=attribute,
                    term=term,
                    outcome=SourceOutcome(
                        source=adapter.name,
                        attribute=attribute.value,
                        term=_describe(term),
                    ),
                )
                for term in terms
                for adapter in adapters
            ]
        return plan

    async def _run_attribute_task(self, attribute: Attribute, calls: List[_AdapterCall]) -> None:
        await asyncio.gather(*(self._run_call(call) for call in calls))
        self.logger.debug(
            "Attribute-task %s finished with %d findings",
            attribute.value,
            sum(len(call.findings) for call in calls),
        )

    async def _run_call(self, call: _AdapterCall) -> None:
        """Run one adapter call with retries; never raises except on cancellation."""
        outcome = call.outcome
        start_time = time.monotonic()
        try:
            while True:
                outcome.attempts += 1
                try:
                    async for finding in call.adapter.lookup(call.term):
                        call.findings.append(finding)
                except Exception as exc:  # noqa: BLE001
                    # A failed call contributes nothing, even findings yielded before it failed
                    call.findings.clear()
                    if (
                        outcome.attempts <= self.retry_policy.max_retries
                        and self.retry_policy.is_retryable(exc)
                    ):
                        delay = self.retry_policy.delay_for(outcome.attempts)
                        self.logger.debug(
                            "Source %s failed for '%s' (%s), retrying in %.2fs",
                            call.adapter.name,
                            outcome.term,
                            exc,
                            delay,
                        )
                        await asyncio.sleep(delay)
                        continue
                    outcome.record_error(exc)
                    self.logger.warning(
                        "Source %s failed for %s '%s': %s (%s)",
                        call.adapter.name,
                        call.attribute.value,
                        outcome.term,
                        exc,
                        type(exc).__name__,
                    )
                else:
                    outcome.status = OutcomeStatus.OK
                    outcome.findings = len(call.findings)
                    self.logger.debug(
                        "Source %s returned %d findings for '%s'",
                        call.adapter.name,
                        outcome.findings,
                        outcome.term,
                    )
                call.finished = True
                return
        finally:
            outcome.elapsed_seconds = time.monotonic() - start_time
