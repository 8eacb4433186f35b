"""Report export for UIO9 search results.

Provides formatters for:
- Plain text reports
- JSON documents
- Standalone HTML reports
"""

import html
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from uio9.core.data_models import Query, Result

TOOL_NAME = "UIO9 OSINT Engine"
TOOL_VERSION = "1.0.0"
REPORT_TITLE = "UIO9 OSINT Investigation Report"

_IDENTITY_LABELS = (
    ("username", "Username"),
    ("email", "Email"),
    ("phone", "Phone"),
    ("name", "Name"),
)


class ExportFormat(str, Enum):
    """Supported export formats."""

    TXT = "txt"
    JSON = "json"
    HTML = "html"

    @property
    def mime_type(self) -> str:
        return {
            ExportFormat.TXT: "text/plain",
            ExportFormat.JSON: "application/json",
            ExportFormat.HTML: "text/html",
        }[self]


@dataclass
class ExportOptions:
    """What to include in an exported report."""

    format: ExportFormat = ExportFormat.TXT
    include_metadata: bool = True
    include_timestamp: bool = True
    include_confidence: bool = True
    include_source: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.format, ExportFormat):
            try:
                self.format = ExportFormat(str(self.format).lower())
            except ValueError:
                raise ValueError(f"Unsupported export format: {self.format}") from None


def _query_dict(query: Optional[Query]) -> Dict[str, Any]:
    return query.to_dict() if query is not None else {}


class TextReportFormatter:
    """Formats results as a plain text report."""

    def format(
        self,
        results: Sequence[Result],
        query: Optional[Query],
        options: ExportOptions,
        timestamp: datetime,
    ) -> str:
        lines: List[str] = [REPORT_TITLE, "=" * 40, ""]

        if options.include_timestamp:
            lines.append(f"Generated: {timestamp.strftime('%Y-%m-%d %H:%M:%S %Z')}")
        if options.include_metadata:
            lines.append("Search Query:")
            query_lines = [
                f"{key.replace('_', ' ').title()}: {value}"
                for key, value in _query_dict(query).items()
            ]
            lines.extend(query_lines or ["No specific query parameters"])
            lines.append("")

        lines.append(f"Total Results: {len(results)}")
        lines.append("")

        for index, result in enumerate(results, 1):
            lines.append(f"Result {index}")
            lines.append("-" * 20)
            lines.append(f"Title: {result.title}")
            lines.append(f"Description: {result.description}")
            if options.include_confidence:
                lines.append(f"Confidence: {result.confidence.value.upper()}")
            if options.include_source:
                lines.append(f"Source: {result.source}")
                if result.platform:
                    lines.append(f"Platform: {result.platform}")
            lines.append(f"Last Seen: {result.last_seen}")
            lines.append(f"URL: {result.url}")
            for key, label in _IDENTITY_LABELS:
                value = getattr(result, key)
                if value:
                    lines.append(f"{label}: {value}")
            lines.append("")

        lines.append("=" * 40)
        lines.append("End of Report")
        return "\n".join(lines) + "\n"


class JSONReportFormatter:
    """Formats results as a JSON document."""

    def __init__(self, indent: int = 2):
        self.indent = indent

    def format(
        self,
        results: Sequence[Result],
        query: Optional[Query],
        options: ExportOptions,
        timestamp: datetime,
    ) -> str:
        metadata: Dict[str, Any] = {
            "tool": TOOL_NAME,
            "version": TOOL_VERSION,
            "totalResults": len(results),
        }
        if options.include_timestamp:
            metadata["timestamp"] = timestamp.isoformat()
        if options.include_metadata:
            metadata["query"] = _query_dict(query)

        records = []
        for result in results:
            record: Dict[str, Any] = {
                "title": result.title,
                "description": result.description,
                "lastSeen": result.last_seen,
                "url": result.url,
            }
            if options.include_confidence:
                record["confidence"] = result.confidence.value
            if options.include_source:
                record["source"] = result.source
                if result.platform:
                    record["platform"] = result.platform
            for key, _ in _IDENTITY_LABELS:
                value = getattr(result, key)
                if value:
                    record[key] = value
            records.append(record)

        return json.dumps({"metadata": metadata, "results": records}, indent=self.indent)


_HTML_STYLE = """
        body { font-family: 'Segoe UI', Tahoma, sans-serif; color: #333; max-width: 1200px;
               margin: 0 auto; padding: 20px; background-color: #f5f5f5; }
        .header { background: #5a67d8; color: white; padding: 30px; border-radius: 10px; }
        .metadata, .result-card, .footer { background: white; padding: 20px; border-radius: 8px;
               margin: 20px 0; box-shadow: 0 2px 4px rgba(0,0,0,0.1); }
        .result-card { border-left: 4px solid #5a67d8; }
        .label { font-weight: bold; color: #5a67d8; margin-right: 6px; }
        .confidence-badge { padding: 4px 8px; border-radius: 12px; font-size: 0.8rem;
               font-weight: bold; text-transform: uppercase; }
        .confidence-high { background-color: #d1fae5; color: #065f46; }
        .confidence-medium { background-color: #fef3c7; color: #92400e; }
        .confidence-low { background-color: #fee2e2; color: #991b1b; }
        .disclaimer { font-size: 0.8rem; color: #999; font-style: italic; }
"""


class HTMLReportFormatter:
    """Formats results as a standalone HTML page.

    Every value taken from a result or query is HTML-escaped.
    """

    def format(
        self,
        results: Sequence[Result],
        query: Optional[Query],
        options: ExportOptions,
        timestamp: datetime,
    ) -> str:
        esc = html.escape
        meta_items = [
            ("Tool Version", f"{TOOL_NAME} v{TOOL_VERSION}"),
            ("Total Results", str(len(results))),
        ]
        if options.include_timestamp:
            meta_items.insert(0, ("Generated", timestamp.strftime("%Y-%m-%d %H:%M:%S %Z")))
        if options.include_metadata:
            meta_items.extend(
                (key.replace("_", " ").title(), str(value))
                for key, value in _query_dict(query).items()
            )

        parts = [
            "<!DOCTYPE html>",
            '<html lang="en">',
            "<head>",
            '    <meta charset="UTF-8">',
            f"    <title>{REPORT_TITLE}</title>",
            f"    <style>{_HTML_STYLE}    </style>",
            "</head>",
            "<body>",
            '    <div class="header">',
            f"        <h1>{REPORT_TITLE}</h1>",
            "    </div>",
            '    <div class="metadata">',
            "        <h3>Investigation Metadata</h3>",
        ]
        for label, value in meta_items:
            parts.append(
                f'        <div><span class="label">{esc(label)}</span>{esc(value)}</div>'
            )
        parts.append("    </div>")
        parts.append(f"    <h2>Found {len(results)} Potential Matches</h2>")

        for result in results:
            parts.append('    <div class="result-card">')
            title = f"        <h3>{esc(result.title)}"
            if options.include_confidence:
                level = result.confidence.value
                title += (
                    f' <span class="confidence-badge confidence-{level}">{level}</span>'
                )
            parts.append(title + "</h3>")
            parts.append(f"        <p>{esc(result.description)}</p>")

            details = []
            if options.include_source:
                details.append(("Source", result.source))
                details.append(("Platform", result.platform or "N/A"))
            details.append(("Last Seen", result.last_seen))
            details.extend(
                (label, getattr(result, key))
                for key, label in _IDENTITY_LABELS
                if getattr(result, key)
            )
            for label, value in details:
                parts.append(
                    f'        <div><span class="label">{label}</span>{esc(str(value))}</div>'
                )
            url = esc(result.url)
            parts.append(
                f'        <div><span class="label">URL</span>'
                f'<a href="{url}" target="_blank" rel="noopener">{url}</a></div>'
            )
            parts.append("    </div>")

        parts.extend(
            [
                '    <div class="footer">',
                f"        <p>Report generated by {TOOL_NAME}</p>",
                '        <p class="disclaimer">This report contains information gathered from'
                " public sources only. Users are responsible for complying with applicable"
                " laws and regulations.</p>",
                "    </div>",
                "</body>",
                "</html>",
            ]
        )
        return "\n".join(parts) + "\n"


_FORMATTERS = {
    ExportFormat.TXT: TextReportFormatter,
    ExportFormat.JSON: JSONReportFormatter,
    ExportFormat.HTML: HTMLReportFormatter,
}


def export_results(
    results: Sequence[Result],
    query: Optional[Query] = None,
    options: Optional[ExportOptions] = None,
    *,
    timestamp: Optional[datetime] = None,
) -> str:
    """Render results as a report.

    Args:
        results: Correlated results, already ordered
        query: The query that produced them
        options: Export options (defaults to a full TXT report)
        timestamp: Report time (defaults to now, UTC)

    Returns:
        Report content

    Raises:
        ValueError: If the export format is not supported
    """
    options = options or ExportOptions()
    formatter = _FORMATTERS[ExportFormat(options.format)]()
    return formatter.format(
        results, query, options, timestamp or datetime.now(timezone.utc)
    )


def default_filename(fmt: Any, timestamp: Optional[datetime] = None) -> str:
    """File name for an exported report, e.g. ``uio9_osint_report_20250101T120000Z.json``."""
    export_format = ExportOptions(format=fmt).format
    stamp = (timestamp or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%SZ")
    return f"uio9_osint_report_{stamp}.{export_format.value}"
