"""
Anthropic Provider Implementation - Messages API over httpx.

NO DICTIONARIES - Responses are normalized into ProviderResponse.
"""

import time

import httpx
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

PROVIDER_NAME = "anthropic"
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_RETRY_AFTER = 60.0


def _token_count(usage: object) -> int:
    """Input plus output tokens. A missing usage block counts as zero."""
    if not isinstance(usage, dict):
        return 0
    total = 0
    for key in ("input_tokens", "output_tokens"):
        value = usage.get(key, 0)
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidResponseError(PROVIDER_NAME, f"Usage field {key} is not an integer")
        total += value
    return total


class AnthropicProvider:
    """
    Anthropic Messages API provider.

    Implements the AIProvider protocol. Connection failures are retried by the
    transport up to max_retries; HTTP errors are classified, never retried here.
    """

    name = PROVIDER_NAME

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-haiku-20240307",
        base_url: str = "https://api.anthropic.com",
        timeout: float = 10.0,
        max_retries: int = 3,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key
            model: Model identifier
            base_url: API root
            timeout: Per-request timeout in seconds
            max_retries: Transport-level connection retries
            client: Pre-built client (tests)
        """
        self.api_key = api_key
        self.model = model
        self.client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=httpx.AsyncHTTPTransport(retries=max_retries),
        )

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

    async def _post_messages(
        self, system: str, user: str, max_tokens: int, temperature: float | None
    ) -> dict[str, object]:
        body: dict[str, object] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": user}],
        }
        if system:
            body["system"] = system
        if temperature is not None:
            body["temperature"] = temperature

        try:
            response = await self.client.post("/v1/messages", headers=self._headers(), json=body)
        except httpx.HTTPError as exc:
            logger.error("anthropic_unreachable", error=str(exc), error_type=type(exc).__name__)
            raise ProviderServerError(PROVIDER_NAME, str(exc) or type(exc).__name__) from exc

        if response.status_code == 429:
            retry_after = response.headers.get("retry-after")
            try:
                seconds = float(retry_after) if retry_after else DEFAULT_RETRY_AFTER
            except ValueError:
                seconds = DEFAULT_RETRY_AFTER
            logger.warning("anthropic_rate_limited", retry_after=seconds)
            raise RateLimitError(PROVIDER_NAME, seconds)
        if response.status_code in (401, 403):
            logger.error("anthropic_auth_failed", status=response.status_code)
            raise ProviderAuthError(PROVIDER_NAME)
        if response.status_code >= 400:
            logger.error(
                "anthropic_api_error",
                status=response.status_code,
                error=response.text[:200],
            )
            raise ProviderServerError(PROVIDER_NAME, f"HTTP {response.status_code}")

        try:
            result = response.json()
        except ValueError as exc:
            raise InvalidResponseError(PROVIDER_NAME, "Response body is not JSON") from exc
        if not isinstance(result, dict):
            raise InvalidResponseError(PROVIDER_NAME, "Response body is not a JSON object")
        return result

    async def generate(self, request: GenerationRequest) -> ProviderResponse:
        """Generate one message through the Messages API."""
        prompt = resolve_prompt(request)
        start = time.perf_counter()

        try:
            payload = await self._post_messages(
                prompt.system_prompt, prompt.user_prompt, prompt.max_tokens, prompt.temperature
            )
        except Exception:
            metrics.record_ai_generation(PROVIDER_NAME, False, time.perf_counter() - start)
            raise

        blocks = payload.get("content")
        first = blocks[0] if isinstance(blocks, list) and blocks else None
        text = first.get("text") if isinstance(first, dict) and first.get("type") == "text" else None
        if not isinstance(text, str) or not text.strip():
            metrics.record_ai_generation(PROVIDER_NAME, False, time.perf_counter() - start)
            raise InvalidResponseError(PROVIDER_NAME, "Expected a text content block")

        try:
            tokens = _token_count(payload.get("usage"))
        except InvalidResponseError:
            metrics.record_ai_generation(PROVIDER_NAME, False, time.perf_counter() - start)
            raise
        model = payload.get("model")
        stop_reason = payload.get("stop_reason")

        metrics.record_ai_generation(PROVIDER_NAME, True, time.perf_counter() - start, tokens)
        logger.info(
            "anthropic_message_generated",
            user_id=request.user_id,
            category=request.category.value,
            tokens=tokens,
            model=model,
        )

        return ProviderResponse(
            content=text.strip(),
            tokens=tokens,
            model=model if isinstance(model, str) else self.model,
            finish_reason=stop_reason if isinstance(stop_reason, str) else None,
        )

    async def test_connection(self) -> bool:
        """Tiny completion as an authenticated round-trip."""
        try:
            await self._post_messages("", "Hi", max_tokens=10, temperature=None)
            return True
        except Exception as exc:
            logger.warning("anthropic_connection_test_failed", error=str(exc))
            return False

    async def aclose(self) -> None:
        """Release pooled connections."""
        await self.client.aclose()
