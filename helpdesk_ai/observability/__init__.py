"""Structured logging and request correlation."""

from .logger import setup_logging  # noqa: F401
from .tracing import (  # noqa: F401
    CorrelationContext,
    get_correlation_id,
    set_correlation_id,
)

__all__ = ["setup_logging", "CorrelationContext", "get_correlation_id", "set_correlation_id"]
