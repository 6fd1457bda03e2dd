"""Observability helpers for repocache.

Log rendering for processes that install handlers:
- JSON formatter for log aggregation
- Console formatter for development
"""

from repocache.observability.logging import (
    ConsoleFormatter,
    JsonFormatter,
    configure_logging,
)

__all__ = [
    "configure_logging",
    "JsonFormatter",
    "ConsoleFormatter",
]
