#!/usr/bin/env python3
"""Command-line interface for UIO9.

Runs a multi-attribute OSINT search from the terminal and prints (or saves)
the correlated results as a TXT, JSON or HTML report.

Commands:
- search: Search every registered source for the given attributes
- sources: List the sources that would be consulted
- validate: Validate configuration
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from uio9.core.config import get_config
from uio9.core.data_models import Query
from uio9.core.errors import EmptyQueryError
from uio9.core.governor import AdmissionGovernor
from uio9.core.http_client import AsyncHTTPClient
from uio9.core.logging_setup import AuditLogger, configure_comprehensive_logging
from uio9.core.orchestrator import SearchOrchestrator
from uio9.sources.registry import build_default_registry
from uio9.utils.formatters import ExportFormat, ExportOptions, export_results

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_EMPTY_QUERY = 2

# Global audit logger
audit_logger: Optional[AuditLogger] = None


def parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="uio9",
        description="UIO9 OSINT CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  uio9 search --username alice01
  uio9 search --name "Jane Doe" --location Berlin --format html -o report.html
  uio9 search --email jane@example.com --report
  uio9 sources
  uio9 validate --strict
        """,
    )
    parser.add_argument("--config", "-c", help="Path to a YAML or TOML config file")
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for log files (default: logging.directory from config)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (default: logging.level from config)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Use JSON structured logging format",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Search
    search_parser = subparsers.add_parser("search", help="Search for a person")
    search_parser.add_argument("--name", help="Full name")
    search_parser.add_argument("--username", "-u", help="Username or handle")
    search_parser.add_argument("--email", "-e", help="Email address")
    search_parser.add_argument("--phone", "-p", help="Phone number")
    search_parser.add_argument("--location", "-l", help="City, region or country")
    search_parser.add_argument(
        "--image", type=Path, help="Image file for reverse image lookups"
    )
    search_parser.add_argument(
        "--timeout",
        "-t",
        type=float,
        help="Overall search deadline in seconds (default: search.timeout_seconds)",
    )
    search_parser.add_argument(
        "--format",
        "-f",
        choices=[fmt.value for fmt in ExportFormat],
        default=ExportFormat.TXT.value,
        help="Report format (default: txt)",
    )
    search_parser.add_argument("--output", "-o", type=Path, help="Output file (default: stdout)")
    search_parser.add_argument(
        "--report",
        action="store_true",
        help="Print per-source outcomes after the results",
    )

    # Sources
    subparsers.add_parser("sources", help="List registered sources")

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate configuration")
    validate_parser.add_argument(
        "--strict", action="store_true", help="Exit with error if validation fails"
    )

    return parser.parse_args(argv)


def build_query(args: argparse.Namespace) -> Query:
    """Build a sanitised query from search arguments."""
    data: Dict[str, Any] = {
        "name": args.name,
        "username": args.username,
        "email": args.email,
        "phone": args.phone,
        "location": args.location,
    }
    if args.image is not None:
        data["image"] = args.image.read_bytes()
    return Query.from_dict(data)


async def handle_search(args: argparse.Namespace, config: Any) -> int:
    """Handle the search command."""
    logger = logging.getLogger(__name__)

    query = build_query(args)
    if query.is_empty:
        print(f"Error: {EmptyQueryError()}", file=sys.stderr)
        return EXIT_EMPTY_QUERY

    governor = AdmissionGovernor.from_config(config)
    async with AsyncHTTPClient(
        timeout=float(config.get("search.http_timeout", 10)),
        user_agent=config.get("search.user_agent"),
    ) as client:
        registry = build_default_registry(client, governor, config)
        orchestrator = SearchOrchestrator.from_config(registry, config)
        report = await orchestrator.search_with_report(query, timeout=args.timeout)

    if audit_logger is not None:
        audit_logger.log_search(
            client_id="cli_user",
            attributes=[attr.value for attr in query.present_attributes()],
            results_count=len(report.results),
            timed_out=report.timed_out,
            failed_sources=report.failed_sources,
        )

    content = export_results(report.results, query, ExportOptions(format=args.format))
    if args.output:
        args.output.write_text(content, encoding="utf-8")
        print(f"Report saved to {args.output}")
        if audit_logger is not None:
            audit_logger.log_export("cli_user", args.format, len(report.results))
    else:
        print(content)

    if args.report:
        print_report(report.to_dict())

    if report.timed_out:
        logger.warning("Search timed out; results are partial")
    if report.all_failed:
        print("Warning: every source failed, results are not conclusive", file=sys.stderr)

    return EXIT_OK


def print_report(report: Dict[str, Any]) -> None:
    """Print per-source outcomes of a search."""
    print("Source Outcomes")
    print("=" * 60)
    for outcome in report["outcomes"]:
        line = (
            f"{outcome['source']:<22} {outcome['status']:<10} "
            f"findings={outcome['findings']:<3} attempts={outcome['attempts']}"
        )
        if outcome["error_type"]:
            line += f"  {outcome['error_type']}: {outcome['message']}"
        if outcome.get("retry_after"):
            line += f" (retry after {outcome['retry_after']:.0f}s)"
        print(line)
    print()
    print(f"Success rate:  {report['success_rate']:.0%}")
    print(f"Timed out:     {report['timed_out']}")
    print(f"Elapsed:       {report['elapsed_seconds']:.2f}s")


async def handle_sources(args: argparse.Namespace, config: Any) -> int:
    """Handle the sources command."""
    governor = AdmissionGovernor.from_config(config)
    async with AsyncHTTPClient() as client:
        registry = build_default_registry(client, governor, config)
    by_attribute = {
        attr.value: [adapter.name for adapter in registry.for_attribute(attr)]
        for attr in registry.attributes()
    }
    print(json.dumps(by_attribute, indent=2))
    return EXIT_OK


async def handle_validate(args: argparse.Namespace, config: Any) -> int:
    """Handle the validate command."""
    result = config.validate()

    print(result)

    if args.strict and not result.is_valid:
        return EXIT_ERROR

    return EXIT_OK


async def main_async(args: argparse.Namespace) -> int:
    """Main async entry point.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    global audit_logger

    config = get_config(args.config)

    log_level_name = args.log_level or str(config.get("logging.level", "INFO")).upper()
    log_dir = args.log_dir or Path(str(config.get("logging.directory", "logs")))
    audit_logger, _ = configure_comprehensive_logging(
        log_dir=log_dir,
        level=getattr(logging, log_level_name, logging.INFO),
        use_json=args.json_logs or bool(config.get("logging.json_format", False)),
        console_output=True,
    )

    logger = logging.getLogger(__name__)
    logger.info("UIO9 CLI started with command: %s", args.command)

    if args.command == "search":
        return await handle_search(args, config)
    elif args.command == "sources":
        return await handle_sources(args, config)
    elif args.command == "validate":
        return await handle_validate(args, config)

    return EXIT_ERROR


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        exit_code = asyncio.run(main_async(args))
        sys.exit(exit_code)
    except EmptyQueryError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_EMPTY_QUERY)
    except KeyboardInterrupt:
        print("\nAborted by user")
        sys.exit(130)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    main()
