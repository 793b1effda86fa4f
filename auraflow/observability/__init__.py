"""
Observability module - Logging, Metrics, and Tracing.
"""

from auraflow.observability.logging import get_logger, setup_logging
from auraflow.observability.metrics import metrics
from auraflow.observability.tracing import setup_tracing

__all__ = [
    "get_logger",
    "setup_logging",
    "metrics",
    "setup_tracing",
]
