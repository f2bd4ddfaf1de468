"""
Monitoring infrastructure for the royalty ledger.

This package provides:
- Structured logging with JSON or console output
- Counters, gauges and histograms with Prometheus export
- Flask request logging and timing middleware

Usage:
    from monitoring import metrics, get_logger

    metrics.increment("royalty_payments_total")
    logger = get_logger(__name__)
    logger.info("Payment received", extra={"work_id": 1, "amount": 500})
"""

from monitoring.logging import LoggingContext, configure_logging, get_logger
from monitoring.metrics import MetricsCollector, metrics
from monitoring.middleware import setup_request_logging

__all__ = [
    "MetricsCollector",
    "metrics",
    "get_logger",
    "configure_logging",
    "LoggingContext",
    "setup_request_logging",
]
