"""Unit tests for RowGenerationService."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from tablefill.core.config import ProviderSettings, Settings
from tablefill.core.exceptions import APIClientError, ConfigurationError, ProviderError, SynthesisError
from tablefill.services.research.row_generation_service import (
    ENTITY_LIST_SCHEMA,
    RowGenerationService,
    create_row_generation_service,
)


async def _generate(service):
    return await service.generate_rows(
        table_name="Berlin Restaurants",
        table_description="Restaurants worth visiting in Berlin",
        entity_column_name="Name",
        entity_column_description="Restaurant name",
    )


@pytest.fixture
def extraction_client():
    client = AsyncMock()
    client.generate_content = AsyncMock(
        return_value=json.dumps({"result": ["Trattoria Da Enzo", " Tim Raue ", "tim raue", ""]})
    )
    return client


class TestRowGenerationService:
    """Test suite for RowGenerationService."""

    @pytest.mark.asyncio
    async def test_generate_rows(self, stub_provider, extraction_client):
        provider = stub_provider("Google", answer="1. Trattoria Da Enzo\n2. Tim Raue")
        service = RowGenerationService(provider, extraction_client)

        rows = await _generate(service)

        assert rows == ["Trattoria Da Enzo", "Tim Raue"]
        assert "Berlin Restaurants" in provider.questions[0]
        kwargs = extraction_client.generate_content.call_args.kwargs
        assert "1. Trattoria Da Enzo" in kwargs["contents"]
        assert kwargs["generation_config"]["response_schema"] == ENTITY_LIST_SCHEMA

    @pytest.mark.asyncio
    async def test_bare_list_accepted(self, stub_provider, extraction_client):
        extraction_client.generate_content.return_value = '["Nobelhart & Schmutzig"]'
        service = RowGenerationService(stub_provider("Google", answer="x"), extraction_client)

        assert await _generate(service) == ["Nobelhart & Schmutzig"]

    @pytest.mark.asyncio
    async def test_invalid_extraction_raises(self, stub_provider, extraction_client):
        extraction_client.generate_content.return_value = '{"result": "Trattoria Da Enzo"}'
        service = RowGenerationService(stub_provider("Google", answer="x"), extraction_client)

        with pytest.raises(SynthesisError) as exc_info:
            await _generate(service)

        assert exc_info.value.raw_response == '{"result": "Trattoria Da Enzo"}'

    @pytest.mark.asyncio
    async def test_extraction_client_error_raises(self, stub_provider, extraction_client):
        extraction_client.generate_content.side_effect = APIClientError("API HTTP Error 500 after retries")
        service = RowGenerationService(stub_provider("Google", answer="x"), extraction_client)

        with pytest.raises(SynthesisError, match="Entity extraction failed"):
            await _generate(service)

    @pytest.mark.asyncio
    async def test_search_timeout_raises_provider_error(self, stub_provider, extraction_client):
        service = RowGenerationService(
            stub_provider("Google", answer="x", delay=5), extraction_client, timeout_seconds=0.05
        )

        with pytest.raises(ProviderError) as exc_info:
            await _generate(service)

        assert exc_info.value.provider == "Google"
        extraction_client.generate_content.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_search_failure_propagates(self, stub_provider, extraction_client):
        service = RowGenerationService(
            stub_provider("Google", error=ProviderError("Google", "quota exceeded")), extraction_client
        )

        with pytest.raises(ProviderError, match="quota exceeded"):
            await _generate(service)

    @pytest.mark.asyncio
    async def test_extraction_timeout_raises(self, stub_provider):
        async def hang(**kwargs):
            await asyncio.sleep(5)

        client = AsyncMock()
        client.generate_content = hang
        service = RowGenerationService(stub_provider("Google", answer="x"), client, timeout_seconds=0.05)

        with pytest.raises(SynthesisError, match="timed out"):
            await _generate(service)


class TestCreateRowGenerationService:
    """Tests for create_row_generation_service."""

    def test_prefers_google(self):
        app_settings = Settings(providers=ProviderSettings(
            OPENAI_API_KEY="k", PERPLEXITY_API_KEY="k", GEMINI_API_KEY="k",
            ENABLED_PROVIDERS="openai,perplexity,gemini",
        ))

        service = create_row_generation_service(app_settings)

        assert service.search_provider.name == "Google"

    def test_falls_back_to_first_provider(self):
        app_settings = Settings(providers=ProviderSettings(
            OPENAI_API_KEY="k", PERPLEXITY_API_KEY="k", GEMINI_API_KEY="",
            ENABLED_PROVIDERS="perplexity,openai,gemini",
        ))

        service = create_row_generation_service(app_settings)

        assert service.search_provider.name == "Perplexity"

    def test_requires_openai_key(self):
        app_settings = Settings(providers=ProviderSettings(
            OPENAI_API_KEY="", PERPLEXITY_API_KEY="", GEMINI_API_KEY="k",
        ))

        with pytest.raises(ConfigurationError):
            create_row_generation_service(app_settings)
