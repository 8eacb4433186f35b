"""Utility modules for UIO9.

This package provides common utilities for:
- Input sanitisation and validation (validators)
- Report export (formatters)
"""

from uio9.utils.validators import (
    ValidationResult,
    sanitize_value,
    should_block_request,
    validate_url,
)

__all__ = [
    "ValidationResult",
    "sanitize_value",
    "should_block_request",
    "validate_url",
]
