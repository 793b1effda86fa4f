"""
AI Orchestrator - Preferred provider with a single fallback hop.

Provider errors are reclassified here; callers only ever see the preferred
provider's own error (fallback disabled) or AllProvidersFailedError.
"""

import asyncio

from structlog import get_logger

from auraflow.exceptions import AllProvidersFailedError, ValidationError
from auraflow.models.domain import (
    AIHealthStatus,
    GenerationRequest,
    HealthLevel,
    ProviderHealth,
    ProviderResponse,
)
from auraflow.observability.metrics import metrics
from auraflow.observability.tracing import trace_operation
from auraflow.services.ai_provider import AIProvider

logger = get_logger(__name__)


class AIOrchestrator:
    """
    Routes generation requests across exactly two providers.

    The orchestrator has no timeout of its own; each provider bounds its own
    calls and the HTTP request deadline bounds the rest.
    """

    def __init__(
        self,
        providers: list[AIProvider],
        preferred_provider: str,
        fallback_enabled: bool = True,
    ) -> None:
        """
        Initialize orchestrator.

        Args:
            providers: The two providers, in any order
            preferred_provider: Name of the provider tried first
            fallback_enabled: Whether a failure may be retried on the other provider
        """
        if len(providers) != 2:
            raise ValueError(f"Expected exactly two providers, got {len(providers)}")
        self._providers = {p.name: p for p in providers}
        if len(self._providers) != 2:
            raise ValueError("Provider names must be distinct")
        if preferred_provider not in self._providers:
            raise ValidationError(
                f"Unknown AI provider: {preferred_provider}", field="preferred_provider"
            )
        self.preferred_provider = preferred_provider
        self.fallback_enabled = fallback_enabled

    @property
    def _alternate_provider(self) -> str:
        return next(name for name in self._providers if name != self.preferred_provider)

    def set_preferred_provider(self, name: str) -> None:
        """Switch which provider is tried first."""
        if name not in self._providers:
            raise ValidationError(f"Unknown AI provider: {name}", field="preferred_provider")
        self.preferred_provider = name
        logger.info("preferred_provider_set", provider=name)

    def set_fallback_enabled(self, enabled: bool) -> None:
        """Enable or disable the fallback hop."""
        self.fallback_enabled = enabled
        logger.info("fallback_toggled", enabled=enabled)

    async def generate_message(self, request: GenerationRequest) -> ProviderResponse:
        """
        Generate with the preferred provider, falling back once to the other.

        Raises:
            AuraFlowError: The preferred provider's error, when fallback is disabled
            AllProvidersFailedError: Both providers failed
        """
        primary_name = self.preferred_provider
        primary = self._providers[primary_name]

        with trace_operation(
            "ai_generate", provider=primary_name, category=request.category.value
        ):
            try:
                return await primary.generate(request)
            except Exception as primary_error:
                if not self.fallback_enabled:
                    logger.error(
                        "primary_provider_failed",
                        provider=primary_name,
                        error=str(primary_error),
                        fallback_enabled=False,
                    )
                    raise

                fallback_name = self._alternate_provider
                logger.warning(
                    "primary_provider_failed",
                    provider=primary_name,
                    fallback_provider=fallback_name,
                    error=str(primary_error),
                    error_type=type(primary_error).__name__,
                )
                metrics.record_fallback(primary_name, fallback_name)

                try:
                    response = await self._providers[fallback_name].generate(request)
                except Exception as fallback_error:
                    logger.error(
                        "all_providers_failed",
                        primary_provider=primary_name,
                        fallback_provider=fallback_name,
                        primary_error=str(primary_error),
                        fallback_error=str(fallback_error),
                    )
                    raise AllProvidersFailedError(
                        str(primary_error), str(fallback_error)
                    ) from fallback_error

                logger.info("fallback_provider_succeeded", provider=fallback_name)
                return response

    async def test_connections(self) -> tuple[ProviderHealth, ...]:
        """Check every provider concurrently; one slow check never blocks another."""
        names = list(self._providers)
        results = await asyncio.gather(
            *(self._providers[name].test_connection() for name in names),
            return_exceptions=True,
        )
        return tuple(
            ProviderHealth(name=name, healthy=result is True)
            for name, result in zip(names, results)
        )

    async def get_health_status(self) -> AIHealthStatus:
        """Classify provider health from live checks. Never cached."""
        providers = await self.test_connections()
        healthy = sum(1 for p in providers if p.healthy)

        if healthy == len(providers):
            status = HealthLevel.HEALTHY
        elif healthy == 0:
            status = HealthLevel.UNHEALTHY
        else:
            status = HealthLevel.DEGRADED

        return AIHealthStatus(
            status=status,
            providers=providers,
            preferred_provider=self.preferred_provider,
            fallback_enabled=self.fallback_enabled,
        )
