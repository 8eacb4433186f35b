"""Correlation of raw findings into ordered results.

Findings are deduplicated by URL, then linked through an identity graph built
with NetworkX: every finding is connected to ``username:``, ``email:`` and
``phone:`` nodes for the identity values it carries.  Two findings corroborate
each other when they share one of those nodes.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Set, Tuple

import networkx as nx

from uio9.core.data_models import Confidence, Finding, Query, Result

CORROBORATING_FIELDS = ("username", "email", "phone")


def rescore(original: Confidence, corroboration: int) -> Confidence:
    """Return the confidence implied by ``corroboration`` other findings.

    Two or more corroborating findings mean ``high``, exactly one means
    ``medium`` and none keeps the original tier.  The result never falls
    below the original tier.
    """
    if corroboration >= 2:
        corroborated = Confidence.HIGH
    elif corroboration == 1:
        corroborated = Confidence.MEDIUM
    else:
        return original
    return corroborated if corroborated.rank > original.rank else original


def result_sort_key(result: Result) -> Tuple[int, str, str]:
    """Confidence tier descending, then source name, then URL."""
    return (-result.confidence.rank, result.source.lower(), result.url)


class Correlator:
    """Deduplicates findings and re-scores them by cross-source agreement."""

    def __init__(self) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)
        self.graph = nx.Graph()

    def deduplicate(self, findings: Iterable[Finding]) -> List[Finding]:
        """Keep the first finding seen for each exact URL."""
        seen: Set[str] = set()
        unique: List[Finding] = []
        for finding in findings:
            if finding.url in seen:
                continue
            seen.add(finding.url)
            unique.append(finding)
        return unique

    def correlate(self, findings: Iterable[Finding], query: Optional[Query] = None) -> List[Result]:
        """Deduplicate, re-score and order findings.

        Args:
            findings: Raw findings from every attribute-task
            query: The query that produced them

        Returns:
            Results ordered by confidence, source and URL
        """
        findings = list(findings)
        unique = self.deduplicate(findings)
        self.graph = self._build_identity_graph(unique)

        results = []
        for index, finding in enumerate(unique):
            corroboration = self._corroboration(index)
            confidence = rescore(finding.confidence, corroboration)
            results.append(Result.from_finding(finding, confidence, corroboration))

        results.sort(key=result_sort_key)

        self.logger.info(
            "Correlated %d findings into %d results for %s",
            len(findings),
            len(results),
            ", ".join(a.value for a in query.present_attributes()) if query else "query",
        )
        return results

    def _build_identity_graph(self, findings: List[Finding]) -> nx.Graph:
        graph = nx.Graph()
        for index, finding in enumerate(findings):
            node = ("finding", index)
            graph.add_node(node, url=finding.url, source=finding.source)
            for field_name in CORROBORATING_FIELDS:
                value = getattr(finding, field_name)
                if value:
                    graph.add_edge(node, (field_name, value), relation=f"has_{field_name}")
        return graph

    def _corroboration(self, index: int) -> int:
        """Count the other findings sharing an identity node with finding ``index``."""
        node = ("finding", index)
        peers = {
            peer
            for identity in self.graph.neighbors(node)
            for peer in self.graph.neighbors(identity)
        }
        peers.discard(node)
        return len(peers)

    def clusters(self, min_size: int = 2) -> List[Set[str]]:
        """URL clusters of findings linked through shared identities in the last run."""
        clusters = []
        for component in nx.connected_components(self.graph):
            urls = {
                self.graph.nodes[node]["url"] for node in component if node[0] == "finding"
            }
            if len(urls) >= min_size:
                clusters.append(urls)
        return clusters


def correlate(findings: Iterable[Finding], query: Optional[Query] = None) -> List[Result]:
    """Convenience function to correlate findings with a fresh correlator."""
    return Correlator().correlate(findings, query)
