"""Concurrent dispatch of one question to every search provider."""

import asyncio
import time
from typing import List, Optional, Sequence

from tablefill.schemas.enrichment import ProviderAnswer
from tablefill.services.enrichment.providers import SearchProvider
from tablefill.utils.logging import get_logger

LOGGER = get_logger(__name__)


def provider_error_response(provider: str, message: str) -> str:
    return f"Error with {provider} search: {message}"


class ProviderFanOut:
    """Ask all providers at once and collect one answer per provider.

    Failures and timeouts are isolated per provider: the returned list always
    has one entry per provider, in provider order.
    """

    def __init__(self, providers: Sequence[SearchProvider], timeout_seconds: Optional[float] = 60.0):
        """
        Args:
            providers: Ordered providers to query
            timeout_seconds: Per-provider bound; None disables it
        """
        self.providers = list(providers)
        self.timeout_seconds = timeout_seconds

    async def ask_all(self, question: str) -> List[ProviderAnswer]:
        started = time.monotonic()
        answers = await asyncio.gather(
            *(self._ask_one(provider, question) for provider in self.providers)
        )

        failed = sum(1 for answer in answers if answer.failed)
        LOGGER.info(
            f"Search results collected from all providers | providers: {len(answers)} | "
            f"failed: {failed} | elapsed: {time.monotonic() - started:.2f}s"
        )
        return list(answers)

    async def _ask_one(self, provider: SearchProvider, question: str) -> ProviderAnswer:
        try:
            if self.timeout_seconds is None:
                response = await provider.ask(question)
            else:
                response = await asyncio.wait_for(provider.ask(question), timeout=self.timeout_seconds)
            return ProviderAnswer(provider=provider.name, response=response)

        except asyncio.TimeoutError:
            message = f"timed out after {self.timeout_seconds}s"
            LOGGER.warning(f"{provider.name} search timed out after {self.timeout_seconds}s")

        except Exception as e:
            message = str(e) or type(e).__name__
            LOGGER.warning(f"{provider.name} search failed: {message}")

        return ProviderAnswer(
            provider=provider.name,
            response=provider_error_response(provider.name, message),
            failed=True,
        )
