"""
Metrics Collection with Prometheus.

Exposes business and system metrics for monitoring.
"""

from enum import Enum
from typing import Callable

from prometheus_client import Counter, Gauge, Histogram, Info

from auraflow.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    PROVIDER = "provider"
    OUTCOME = "outcome"
    CATEGORY = "category"
    SOURCE = "source"
    ERROR_TYPE = "error_type"
    OPERATION = "operation"


class AuraFlowMetrics:
    """
    Centralized metrics for the AuraFlow core API.

    Covers:
    - HTTP requests (rate, duration, in-flight)
    - AI generations per provider and fallbacks between providers
    - Deduplication rejections and degraded lookups
    - Daily Drop outcomes
    - Entitlement source failures and quota denials
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "auraflow_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "auraflow_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "auraflow_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "auraflow_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # AI Provider Metrics
        # ====================================================================
        self.ai_generations_total = Counter(
            "auraflow_ai_generations_total",
            "AI provider calls by outcome",
            [MetricLabels.PROVIDER, MetricLabels.OUTCOME],
        )

        self.ai_generation_duration_seconds = Histogram(
            "auraflow_ai_generation_duration_seconds",
            "AI provider call duration in seconds",
            [MetricLabels.PROVIDER],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0),
        )

        self.ai_tokens_total = Counter(
            "auraflow_ai_tokens_total",
            "Tokens consumed per provider",
            [MetricLabels.PROVIDER],
        )

        self.ai_fallbacks_total = Counter(
            "auraflow_ai_fallbacks_total",
            "Requests routed to the fallback provider",
            ["from_provider", "to_provider"],
        )

        # ====================================================================
        # Content Metrics
        # ====================================================================
        self.messages_generated_total = Counter(
            "auraflow_messages_generated_total",
            "User messages served",
            [MetricLabels.CATEGORY, "cached"],
        )

        self.dedup_rejections_total = Counter(
            "auraflow_dedup_rejections_total",
            "Generated content rejected as a near-duplicate",
            [MetricLabels.SOURCE],
        )

        self.dedup_degraded_total = Counter(
            "auraflow_dedup_degraded_total",
            "Deduplication lookups that failed open",
            [MetricLabels.SOURCE],
        )

        self.daily_drops_total = Counter(
            "auraflow_daily_drops_total",
            "Daily Drop requests by terminal state",
            [MetricLabels.OUTCOME],
        )

        # ====================================================================
        # Entitlement Metrics
        # ====================================================================
        self.entitlement_source_failures_total = Counter(
            "auraflow_entitlement_source_failures_total",
            "Payment back-end lookups that failed during a merge",
            [MetricLabels.SOURCE],
        )

        self.quota_denials_total = Counter(
            "auraflow_quota_denials_total",
            "Generation requests denied by quota or cooldown",
            ["tier"],
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "auraflow_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_ai_generation(
        self, provider: str, success: bool, duration: float, tokens: int = 0
    ) -> None:
        """Record one provider call."""
        self.ai_generations_total.labels(
            provider=provider, outcome="success" if success else "failure"
        ).inc()
        self.ai_generation_duration_seconds.labels(provider=provider).observe(duration)
        if tokens:
            self.ai_tokens_total.labels(provider=provider).inc(tokens)

    def record_fallback(self, from_provider: str, to_provider: str) -> None:
        """Record a switch to the fallback provider."""
        self.ai_fallbacks_total.labels(from_provider=from_provider, to_provider=to_provider).inc()

    def record_message(self, category: str, cached: bool) -> None:
        """Record a message served to a user."""
        self.messages_generated_total.labels(category=category, cached=str(cached)).inc()

    def record_dedup_rejection(self, source: str) -> None:
        """Record a near-duplicate rejection."""
        self.dedup_rejections_total.labels(source=source).inc()

    def record_dedup_degraded(self, source: str) -> None:
        """Record a failed-open deduplication lookup."""
        self.dedup_degraded_total.labels(source=source).inc()

    def record_daily_drop(self, outcome: str) -> None:
        """Record a Daily Drop terminal state."""
        self.daily_drops_total.labels(outcome=outcome).inc()

    def record_entitlement_source_failure(self, source: str) -> None:
        """Record a payment back-end omitted from a merge."""
        self.entitlement_source_failures_total.labels(source=source).inc()

    def record_quota_denial(self, tier: str) -> None:
        """Record a quota or cooldown denial."""
        self.quota_denials_total.labels(tier=tier).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = AuraFlowMetrics()


def get_metrics_handler() -> Callable[[], bytes]:
    """Get Prometheus exposition handler for the /metrics route."""
    from prometheus_client import REGISTRY, generate_latest

    def metrics_endpoint() -> bytes:
        return generate_latest(REGISTRY)

    return metrics_endpoint
