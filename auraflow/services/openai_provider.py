"""
OpenAI Provider Implementation.

NO DICTIONARIES - All data uses strongly typed models.
"""

import time

import openai
from openai import AsyncOpenAI
from structlog import get_logger

from auraflow.exceptions import (
    InvalidResponseError,
    ProviderAuthError,
    ProviderServerError,
    RateLimitError,
)
from auraflow.models.domain import GenerationRequest, ProviderResponse
from auraflow.observability.metrics import metrics
from auraflow.services.ai_provider import resolve_prompt

logger = get_logger(__name__)

PROVIDER_NAME = "openai"


def _retry_after(exc: openai.APIStatusError) -> float | None:
    value = exc.response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class OpenAIProvider:
    """
    OpenAI chat completions provider.

    Implements the AIProvider protocol. The SDK applies its own timeout and
    bounded retries; whatever still fails is classified for the orchestrator.
    """

    name = PROVIDER_NAME

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-3.5-turbo",
        timeout: float = 10.0,
        max_retries: int = 3,
        client: AsyncOpenAI | None = None,
    ) -> None:
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Chat model identifier
            timeout: Per-request timeout in seconds
            max_retries: SDK-level retry budget
            client: Pre-built client (tests)
        """
        self.model = model
        self.client = client or AsyncOpenAI(
            api_key=api_key, timeout=timeout, max_retries=max_retries
        )

    async def generate(self, request: GenerationRequest) -> ProviderResponse:
        """Generate one message through chat completions."""
        prompt = resolve_prompt(request)
        start = time.perf_counter()

        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": prompt.system_prompt},
                    {"role": "user", "content": prompt.user_prompt},
                ],
                max_tokens=prompt.max_tokens,
                temperature=prompt.temperature,
                presence_penalty=0.1,
                frequency_penalty=0.1,
                user=request.user_id,
            )
        except openai.RateLimitError as exc:
            metrics.record_ai_generation(PROVIDER_NAME, False, time.perf_counter() - start)
            logger.warning("openai_rate_limited", user_id=request.user_id)
            raise RateLimitError(PROVIDER_NAME, _retry_after(exc)) from exc
        except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
            metrics.record_ai_generation(PROVIDER_NAME, False, time.perf_counter() - start)
            logger.error("openai_auth_failed", error=str(exc))
            raise ProviderAuthError(PROVIDER_NAME) from exc
        except (openai.APITimeoutError, openai.APIConnectionError) as exc:
            metrics.record_ai_generation(PROVIDER_NAME, False, time.perf_counter() - start)
            logger.error("openai_unreachable", error=str(exc), error_type=type(exc).__name__)
            raise ProviderServerError(PROVIDER_NAME, str(exc)) from exc
        except openai.APIStatusError as exc:
            metrics.record_ai_generation(PROVIDER_NAME, False, time.perf_counter() - start)
            logger.error("openai_request_failed", status_code=exc.status_code, error=str(exc))
            raise ProviderServerError(PROVIDER_NAME, f"HTTP {exc.status_code}: {exc}") from exc

        choice = completion.choices[0] if completion.choices else None
        content = (choice.message.content or "").strip() if choice else ""
        if not content:
            metrics.record_ai_generation(PROVIDER_NAME, False, time.perf_counter() - start)
            raise InvalidResponseError(PROVIDER_NAME, "No content generated")

        tokens = completion.usage.total_tokens if completion.usage else 0
        metrics.record_ai_generation(PROVIDER_NAME, True, time.perf_counter() - start, tokens)
        logger.info(
            "openai_message_generated",
            user_id=request.user_id,
            category=request.category.value,
            tokens=tokens,
            model=completion.model,
        )

        return ProviderResponse(
            content=content,
            tokens=tokens,
            model=completion.model or self.model,
            finish_reason=choice.finish_reason if choice else None,
        )

    async def test_connection(self) -> bool:
        """List models as a cheap authenticated round-trip."""
        try:
            await self.client.models.list()
            return True
        except Exception as exc:
            logger.warning("openai_connection_test_failed", error=str(exc))
            return False
