"""
Observability Module for the legacy activity migration

Provides:
- Structured logging with correlation IDs (tenant, account, activity, line item)
- Human-readable and JSON formatters selectable per run
"""

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    get_correlation_context,
    with_correlation,
)

__all__ = [
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "get_correlation_context",
    "with_correlation",
]
