"""Web-search provider adapters.

Each adapter exposes ``ask(question) -> str`` over a different backend and
fails closed: any transport, auth or response-shape problem surfaces as a
``ProviderError`` tagged with the provider name.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from tablefill.core.config import Settings
from tablefill.core.exceptions import AppError, ProviderError
from tablefill.core.llm_client import ChatCompletionsClient, GeminiClient
from tablefill.prompts.system_prompts import SEARCH_PROVIDER_PROMPT
from tablefill.utils.logging import get_logger

LOGGER = get_logger(__name__)


class SearchProvider(ABC):
    """A web-search capable LLM backend."""

    name: str = "provider"

    @abstractmethod
    async def ask(self, question: str) -> str:
        """Return the provider's free-text answer.

        Raises:
            ProviderError: If no usable answer could be obtained
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class OpenAISearchProvider(SearchProvider):
    """OpenAI chat completions with the web search tool enabled."""

    name = "OpenAI"

    def __init__(self, client: ChatCompletionsClient):
        self.client = client

    async def ask(self, question: str) -> str:
        try:
            answer = await self.client.generate_content(
                contents=question,
                system_instruction=SEARCH_PROVIDER_PROMPT,
                generation_config={"web_search": True},
            )
        except AppError as e:
            raise ProviderError(self.name, f"{self.name} request failed: {e}", original_error=e) from e

        if not answer.strip():
            raise ProviderError(self.name, f"Empty response from {self.name}")
        return answer


class PerplexitySearchProvider(SearchProvider):
    """Perplexity Sonar chat completions.

    Perplexity reports the URLs it cited separately from the message; they
    are appended to the answer so synthesis can pick them up as sources.
    """

    name = "Perplexity"

    def __init__(self, client: ChatCompletionsClient):
        self.client = client

    async def ask(self, question: str) -> str:
        try:
            completion = await self.client.complete(
                contents=question,
                system_instruction=SEARCH_PROVIDER_PROMPT,
            )
        except AppError as e:
            raise ProviderError(self.name, f"{self.name} request failed: {e}", original_error=e) from e

        answer = completion.content
        if not answer.strip():
            raise ProviderError(self.name, f"Invalid response from {self.name} API: empty content")

        if completion.citations:
            sources = "\n".join(f"[{i}] {url}" for i, url in enumerate(completion.citations, start=1))
            answer = f"{answer}\n\nSources:\n{sources}"
        return answer


class GeminiSearchProvider(SearchProvider):
    """Gemini generate-content grounded with Google Search."""

    name = "Google"

    def __init__(self, client: GeminiClient):
        self.client = client

    async def ask(self, question: str) -> str:
        try:
            answer = await self.client.generate_content(
                contents=question,
                system_instruction=SEARCH_PROVIDER_PROMPT,
                generation_config={"web_search": True},
            )
        except AppError as e:
            raise ProviderError(self.name, f"{self.name} request failed: {e}", original_error=e) from e

        if not answer.strip():
            raise ProviderError(self.name, f"Empty response from {self.name}")
        return answer


def create_search_providers(
    settings: Settings,
    enabled: Optional[List[str]] = None,
) -> List[SearchProvider]:
    """Build the ordered list of configured search providers.

    Providers without an API key are skipped with a warning.

    Args:
        settings: Application settings
        enabled: Optional override of ``settings.enabled_providers``

    Returns:
        Providers in the configured order
    """
    provider_settings = settings.providers
    names = enabled if enabled is not None else provider_settings.enabled_providers
    retries = provider_settings.provider_max_retries
    timeout = settings.provider_timeout_seconds

    providers: List[SearchProvider] = []
    for name in names:
        key = name.strip().lower()
        if key == "openai":
            if not provider_settings.openai_api_key:
                LOGGER.warning("OPENAI_API_KEY not set, skipping OpenAI provider")
                continue
            providers.append(OpenAISearchProvider(ChatCompletionsClient(
                api_key=provider_settings.openai_api_key,
                model=provider_settings.openai_search_model,
                base_url=provider_settings.openai_api_url,
                timeout=timeout,
                max_retries=retries,
                retry_delay=settings.retry_delay,
            )))
        elif key == "perplexity":
            if not provider_settings.perplexity_api_key:
                LOGGER.warning("PERPLEXITY_API_KEY not set, skipping Perplexity provider")
                continue
            providers.append(PerplexitySearchProvider(ChatCompletionsClient(
                api_key=provider_settings.perplexity_api_key,
                model=provider_settings.perplexity_model,
                base_url=provider_settings.perplexity_api_url,
                timeout=timeout,
                max_retries=retries,
                retry_delay=settings.retry_delay,
            )))
        elif key == "gemini":
            if not provider_settings.gemini_api_key:
                LOGGER.warning("GEMINI_API_KEY not set, skipping Google provider")
                continue
            providers.append(GeminiSearchProvider(GeminiClient(
                api_key=provider_settings.gemini_api_key,
                model=provider_settings.gemini_model,
                timeout=timeout,
                max_retries=retries,
            )))
        else:
            raise ValueError(f"Unsupported provider: {name}")

    LOGGER.info(f"Configured search providers: {[p.name for p in providers]}")
    return providers
