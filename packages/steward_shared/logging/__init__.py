"""Structured stdout logging for Steward services."""

from . import fields
from .config import configure_logging, get_logger
from .context import bind_context, clear_context, get_context, log_context
from .public_api import (
    PublicApiLoggingConcern,
    PublicApiMetricsConcern,
    PublicApiTracingConcern,
    public_api_instrumented,
)

__all__ = [
    "PublicApiLoggingConcern",
    "PublicApiMetricsConcern",
    "PublicApiTracingConcern",
    "bind_context",
    "clear_context",
    "configure_logging",
    "fields",
    "get_context",
    "get_logger",
    "log_context",
    "public_api_instrumented",
]
