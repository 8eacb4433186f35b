"""Logging configuration for UIO9.

This module defines the logging infrastructure used by the CLI and API:
- Standard application logging with rotation
- Structured JSON logging for machine parsing
- Audit logging of searches and exports
- Timing of long operations

Library code only obtains loggers; entry points call ``configure_logging``
(or ``configure_comprehensive_logging``) once at startup.
"""

import json
import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log string
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data)


class AuditLogger:
    """Dedicated audit logger for searches and exports."""

    def __init__(self, log_file: Optional[Path] = None):
        """Initialize audit logger.

        Args:
            log_file: Path to audit log file
        """
        self.logger = logging.getLogger("uio9.audit")
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False  # Don't propagate to root logger

        if log_file is not None and not self.logger.handlers:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=10,
            )
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)

    def log_search(
        self,
        client_id: str,
        attributes: list,
        results_count: int = 0,
        timed_out: bool = False,
        failed_sources: Optional[list] = None,
    ) -> None:
        """Log a search operation.

        Args:
            client_id: Caller performing the search
            attributes: Query attributes that were searched
            results_count: Number of results returned
            timed_out: Whether the search hit its deadline
            failed_sources: Sources whose calls failed
        """
        self.logger.info(
            "Search performed",
            extra={
                "extra_fields": {
                    "event_type": "search",
                    "client_id": client_id,
                    "attributes": attributes,
                    "results_count": results_count,
                    "timed_out": timed_out,
                    "failed_sources": failed_sources or [],
                }
            },
        )

    def log_export(self, client_id: str, export_format: str, record_count: int) -> None:
        """Log a report export."""
        self.logger.info(
            "Results exported",
            extra={
                "extra_fields": {
                    "event_type": "export",
                    "client_id": client_id,
                    "export_format": export_format,
                    "record_count": record_count,
                }
            },
        )


@contextmanager
def log_performance(operation: str, logger: Optional[logging.Logger] = None) -> Iterator[None]:
    """Context manager for logging operation performance.

    Args:
        operation: Name of the operation
        logger: Logger to use (default: root logger)

    Example:
        with log_performance("search"):
            results = await orchestrator.search(query)
    """
    if logger is None:
        logger = logging.getLogger()

    start_time = time.monotonic()
    success = False
    try:
        yield
        success = True
    finally:
        duration_ms = (time.monotonic() - start_time) * 1000
        logger.info("%s completed in %.2fms (success=%s)", operation, duration_ms, success)


def configure_logging(
    log_file: Optional[Path] = None,
    level: int = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    use_json: bool = False,
    console_output: bool = True,
) -> None:
    """Configure root logging handlers with optional JSON formatting.

    Parameters
    ----------
    log_file: Path, optional
        If provided, logs will be written to this file with rotation.  The
        directory will be created if it does not exist.
    level: int
        Logging level (e.g. ``logging.INFO`` or ``logging.DEBUG``).
    max_bytes: int
        Maximum size of each log file before rotation.
    backup_count: int
        Number of rotated log files to keep.
    use_json: bool
        If True, use JSON structured logging format.
    console_output: bool
        If True, enable console output handler.
    """
    # Prevent duplicate handlers if configure_logging is called multiple times
    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(level)

    if use_json:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    if console_output:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)


def configure_comprehensive_logging(
    log_dir: Optional[Path] = Path("logs"),
    level: int = logging.INFO,
    use_json: bool = False,
    console_output: bool = True,
) -> Tuple[AuditLogger, Optional[Path]]:
    """Configure application and audit logging for UIO9.

    Args:
        log_dir: Base directory for log files; ``None`` logs to console only
        level: Logging level for application logs
        use_json: Use JSON structured logging
        console_output: Enable console output

    Returns:
        Tuple of (audit_logger, main_log_path)
    """
    main_log = log_dir / "uio9.log" if log_dir is not None else None
    configure_logging(
        log_file=main_log,
        level=level,
        use_json=use_json,
        console_output=console_output,
    )
    audit_logger = AuditLogger(log_dir / "audit.log" if log_dir is not None else None)

    logging.getLogger(__name__).info(
        "Logging configured: main=%s, audit=%s",
        main_log or "console",
        log_dir / "audit.log" if log_dir is not None else "disabled",
    )
    return audit_logger, main_log
