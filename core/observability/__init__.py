"""
Observability Module for the warehouse-document bridge

Provides structured logging with correlation IDs.
"""

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
    bind_correlation,
    log_message,
)

__all__ = [
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
    "bind_correlation",
    "log_message",
]
