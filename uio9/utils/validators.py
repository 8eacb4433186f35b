"""Boundary input handling for UIO9.

Query strings arriving from the CLI or HTTP API are sanitised here before a
:class:`~uio9.core.data_models.Query` is built.  The search core assumes its
inputs already passed through these helpers.
"""

import ipaddress
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

MAX_VALUE_LENGTH = 200
MAX_PAYLOAD_LENGTH = 1000

_SPECIAL_CHARS = re.compile(r"[<>\"'&]")
_REPEATED_DOTS = re.compile(r"\.{2,}")
_PATH_CHARS = re.compile(r"[/\\]")

_BLOCKED_URL_PATTERNS = (
    re.compile(r"/wp-admin", re.IGNORECASE),
    re.compile(r"/admin", re.IGNORECASE),
    re.compile(r"/phpmyadmin", re.IGNORECASE),
    re.compile(r"/\.env", re.IGNORECASE),
    re.compile(r"/config", re.IGNORECASE),
    re.compile(r"/backup", re.IGNORECASE),
)

_PRIVATE_NETWORKS = (
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("172.16.0.0/12"),
)


@dataclass
class ValidationResult:
    """Result of a validation check."""

    valid: bool
    value: str
    normalized: Optional[str] = None
    error: Optional[str] = None


def sanitize_value(text: str) -> str:
    """Sanitise one query attribute string.

    Removes HTML special characters, collapses repeated dots, drops path
    separators, trims whitespace and truncates to 200 characters.
    """
    text = _SPECIAL_CHARS.sub("", text)
    text = _REPEATED_DOTS.sub(".", text)
    text = _PATH_CHARS.sub("", text)
    return text.strip()[:MAX_VALUE_LENGTH]


def validate_url(url: str) -> ValidationResult:
    """Check that a URL is an http(s) URL to a public host."""
    if not url:
        return ValidationResult(valid=False, value=url, error="URL is empty")

    try:
        parsed = urlparse(url.strip())
    except ValueError as exc:
        return ValidationResult(valid=False, value=url, error=f"Malformed URL: {exc}")

    if parsed.scheme not in ("http", "https"):
        return ValidationResult(
            valid=False, value=url, error=f"Unsupported scheme: {parsed.scheme or 'none'}"
        )

    hostname = (parsed.hostname or "").lower()
    if not hostname:
        return ValidationResult(valid=False, value=url, error="URL has no host")
    if hostname == "localhost":
        return ValidationResult(valid=False, value=url, error="Local hosts are not allowed")

    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        address = None
    if address is not None and any(address in net for net in _PRIVATE_NETWORKS):
        return ValidationResult(valid=False, value=url, error="Private addresses are not allowed")

    return ValidationResult(valid=True, value=url, normalized=parsed.geturl())


def should_block_request(url: str, payload: Optional[str] = None) -> bool:
    """Return True for requests probing admin URLs or carrying oversized payloads."""
    if url and any(pattern.search(url) for pattern in _BLOCKED_URL_PATTERNS):
        return True
    return bool(payload) and len(payload) > MAX_PAYLOAD_LENGTH
