"""Logging and metrics shared by the CLI, the API and the sync pipeline."""

from .logging import (
    configure_logging,
    current_log_context,
    get_logger,
    log_context,
    log_exception,
)
from .metrics import (
    MetricRegistry,
    format_prometheus,
    get_registry,
    record_api_request,
    record_rate_limit_retry,
    record_sync_run,
    record_upstream_request,
)

__all__ = [
    "configure_logging",
    "current_log_context",
    "get_logger",
    "log_context",
    "log_exception",
    "MetricRegistry",
    "format_prometheus",
    "get_registry",
    "record_api_request",
    "record_rate_limit_retry",
    "record_sync_run",
    "record_upstream_request",
]
