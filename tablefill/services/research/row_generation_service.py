"""Generate candidate entity rows for a new research table."""

import asyncio
from typing import List, Optional

from pydantic import StrictStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from tablefill.core.config import Settings, settings as default_settings
from tablefill.core.exceptions import AppError, ConfigurationError, ProviderError, SynthesisError
from tablefill.core.llm_client import ChatCompletionsClient
from tablefill.prompts.system_prompts import (
    ROW_CANDIDATES_QUESTION_TEMPLATE,
    ROW_EXTRACTION_PROMPT,
    ROW_EXTRACTION_QUESTION_TEMPLATE,
)
from tablefill.services.enrichment.providers import (
    GeminiSearchProvider,
    SearchProvider,
    create_search_providers,
)
from tablefill.utils.json_parser import parse_json_strict
from tablefill.utils.logging import get_logger

LOGGER = get_logger(__name__)

_ENTITY_LIST = TypeAdapter(List[StrictStr])

ENTITY_LIST_SCHEMA = {
    "type": "object",
    "properties": {
        "result": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Names of the candidate entities, one per item.",
        },
    },
    "additionalProperties": False,
    "required": ["result"],
}


class RowGenerationService:
    """Lists candidate entities with one search call and one extraction call."""

    def __init__(
        self,
        search_provider: SearchProvider,
        extraction_client: ChatCompletionsClient,
        timeout_seconds: Optional[float] = 60.0,
    ):
        self.search_provider = search_provider
        self.extraction_client = extraction_client
        self.timeout_seconds = timeout_seconds

    async def _bounded(self, coro):
        if self.timeout_seconds is None:
            return await coro
        return await asyncio.wait_for(coro, timeout=self.timeout_seconds)

    async def generate_rows(
        self,
        table_name: str,
        table_description: str,
        entity_column_name: str,
        entity_column_description: str,
    ) -> List[str]:
        """Return entity names for the table's entity column.

        Raises:
            ProviderError: If the search call fails or times out
            SynthesisError: If the extraction call fails or returns an invalid list
        """
        question = ROW_CANDIDATES_QUESTION_TEMPLATE.format(
            table_name=table_name,
            table_description=table_description,
            entity_column_name=entity_column_name,
            entity_column_description=entity_column_description,
        )

        try:
            search_results = await self._bounded(self.search_provider.ask(question))
        except asyncio.TimeoutError as e:
            raise ProviderError(
                self.search_provider.name,
                f"{self.search_provider.name} search timed out after {self.timeout_seconds}s",
                original_error=e,
            ) from e

        extraction_question = ROW_EXTRACTION_QUESTION_TEMPLATE.format(
            table_name=table_name,
            table_description=table_description,
            entity_column_name=entity_column_name,
            entity_column_description=entity_column_description,
            search_results=search_results,
        )

        try:
            raw_response = await self._bounded(self.extraction_client.generate_content(
                contents=extraction_question,
                system_instruction=ROW_EXTRACTION_PROMPT,
                generation_config={
                    "temperature": 0.0,
                    "response_schema": ENTITY_LIST_SCHEMA,
                    "response_schema_name": "entities",
                },
            ))
        except asyncio.TimeoutError as e:
            raise SynthesisError(f"Entity extraction timed out after {self.timeout_seconds}s", original_error=e) from e
        except AppError as e:
            raise SynthesisError(f"Entity extraction failed: {e}", original_error=e) from e

        entities = self._parse_entities(raw_response)
        LOGGER.info(f"Generated {len(entities)} candidate rows for table '{table_name}'")
        return entities

    @staticmethod
    def _parse_entities(raw_response: str) -> List[str]:
        try:
            payload = parse_json_strict(raw_response)
            # Accept a bare array as well as the {"result": [...]} wrapper
            items = payload.get("result") if isinstance(payload, dict) else payload
            names = _ENTITY_LIST.validate_python(items)
        except (ValueError, PydanticValidationError) as e:
            LOGGER.error(f"Error parsing entity list: {e} | message: {raw_response!r}")
            raise SynthesisError(
                f"Entity list is not valid: {e}", raw_response=raw_response, original_error=e
            ) from e

        entities: List[str] = []
        seen = set()
        for name in names:
            cleaned = name.strip()
            if cleaned and cleaned.casefold() not in seen:
                seen.add(cleaned.casefold())
                entities.append(cleaned)
        return entities


def create_row_generation_service(app_settings: Optional[Settings] = None) -> RowGenerationService:
    """Build the service from configuration.

    Searches with Google when configured, otherwise the first usable provider.

    Raises:
        ConfigurationError: If no provider is usable or the extraction key is missing
    """
    app_settings = app_settings or default_settings

    providers = create_search_providers(app_settings)
    if not providers:
        raise ConfigurationError("No search providers configured for row generation.")
    if not app_settings.openai_api_key:
        raise ConfigurationError("OPENAI_API_KEY is required for entity extraction.")

    extraction_client = ChatCompletionsClient(
        api_key=app_settings.openai_api_key,
        model=app_settings.synthesis_model,
        base_url=app_settings.providers.openai_api_url,
        timeout=app_settings.synthesis_timeout_seconds,
        max_retries=1,
        retry_delay=app_settings.retry_delay,
    )
    search_provider = next((p for p in providers if p.name == GeminiSearchProvider.name), providers[0])
    return RowGenerationService(
        search_provider=search_provider,
        extraction_client=extraction_client,
        timeout_seconds=app_settings.provider_timeout_seconds,
    )
