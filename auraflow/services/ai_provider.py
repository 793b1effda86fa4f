"""
AI Provider Protocol - Provider-agnostic text generation interface.

NO DICTIONARIES - All data uses strongly typed models.
"""

from dataclasses import dataclass
from typing import Protocol

from auraflow.models.domain import GenerationRequest, ProviderResponse
from auraflow.services.prompts import build_contextual_prompt, get_template


@dataclass(frozen=True)
class ResolvedPrompt:
    """Everything a provider needs to make one call."""

    system_prompt: str
    user_prompt: str
    max_tokens: int
    temperature: float


def resolve_prompt(request: GenerationRequest) -> ResolvedPrompt:
    """
    Turn a request into the concrete prompt and sampling parameters.

    An explicit prompt on the request replaces the category prompt; the
    category still supplies the token budget and default temperature.
    """
    template = get_template(request.category)
    prompt = request.prompt or build_contextual_prompt(
        request.category, request.time_of_day, request.weather_context
    )
    temperature = request.temperature if request.temperature is not None else template.temperature
    return ResolvedPrompt(
        system_prompt=prompt.system_prompt,
        user_prompt=prompt.user_prompt,
        max_tokens=template.max_tokens,
        temperature=temperature,
    )


class AIProvider(Protocol):
    """
    Text generation provider protocol.

    Every backend (OpenAI, Anthropic, ...) implements this interface so the
    orchestrator never depends on a vendor SDK.
    """

    name: str

    async def generate(self, request: GenerationRequest) -> ProviderResponse:
        """
        Generate one message.

        Raises:
            RateLimitError: Provider throttled us (carries retry_after)
            ProviderAuthError: Credentials rejected; not retryable
            ProviderServerError: 5xx, timeout or network failure; retryable
            InvalidResponseError: Empty or non-text payload
        """
        ...

    async def test_connection(self) -> bool:
        """Minimal round-trip for health checks. Never raises."""
        ...
