"""
Observability - Structured logging for the sentence gateway.

Usage:
    from shared.observability import configure_logging, get_logger

    # Initialize once at service startup
    configure_logging(service_name="sentence_service")
    logger = get_logger(__name__)
"""
from .logging_config import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)

__all__ = [
    "LogContext",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
]
