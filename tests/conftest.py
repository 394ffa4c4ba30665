"""Pytest configuration and shared fixtures."""

import asyncio
import json
import os
from typing import List, Optional
from unittest.mock import AsyncMock

import pytest

# Set required environment variables for testing BEFORE importing the package
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("PERPLEXITY_API_KEY", "test-perplexity-key")
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")

from tablefill.schemas.enrichment import CellEnrichmentRequest
from tablefill.schemas.table import AdditionalTypeInformation, Column, ColumnType, SelectItem
from tablefill.services.enrichment.providers import SearchProvider


class StubProvider(SearchProvider):
    """Search provider returning a canned answer, raising, or hanging."""

    def __init__(
        self,
        name: str,
        answer: str = "",
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.name = name
        self.answer = answer
        self.error = error
        self.delay = delay
        self.questions: List[str] = []

    async def ask(self, question: str) -> str:
        self.questions.append(question)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.answer


def synthesis_payload(result, reasoning_steps=None, sources=None) -> str:
    """Serialize a synthesis response the way the model returns it."""
    return json.dumps({
        "result": result,
        "metadata": {
            "reasoningSteps": reasoning_steps if reasoning_steps is not None else ["Compared provider answers"],
            "sources": sources if sources is not None else [],
        },
    })


@pytest.fixture
def text_column() -> Column:
    return Column(id="col-cuisine-notes", name="Notes", type=ColumnType.TEXT, description="Short notes")


@pytest.fixture
def number_column() -> Column:
    return Column(
        id="col-price",
        name="Average Price",
        type=ColumnType.NUMBER,
        description="Average main course price",
        additional_type_information=AdditionalTypeInformation(currency="EUR", decimals=2),
    )


@pytest.fixture
def select_column() -> Column:
    return Column(
        id="col-cuisine",
        name="Cuisine",
        type=ColumnType.SELECT,
        description="Primary cuisine",
        additional_type_information=AdditionalTypeInformation(
            select_items=[SelectItem(id="item-italian", name="Italian", color="#FF8F37")]
        ),
    )


@pytest.fixture
def multi_select_column() -> Column:
    return Column(
        id="col-vibe",
        name="Vibe",
        type=ColumnType.MULTI_SELECT,
        description="Atmosphere of the restaurant",
        additional_type_information=AdditionalTypeInformation(select_items=[]),
    )


@pytest.fixture
def make_request():
    """Factory for cell enrichment requests against a restaurants table."""

    def _make(column: Column, row_id: str = "row-1", row_data: Optional[dict] = None) -> CellEnrichmentRequest:
        return CellEnrichmentRequest(
            table_id="table-restaurants",
            table_name="Berlin Restaurants",
            table_description="Restaurants worth visiting in Berlin",
            column=column,
            row_id=row_id,
            existing_row_data=row_data if row_data is not None else {"col-name": "Trattoria Da Enzo"},
        )

    return _make


@pytest.fixture
def mock_synthesis_client() -> AsyncMock:
    """Chat completions client whose generate_content is an AsyncMock."""
    client = AsyncMock()
    client.generate_content = AsyncMock(return_value=synthesis_payload("ok"))
    return client


@pytest.fixture
def stub_provider():
    """Factory for StubProvider instances."""
    return StubProvider


@pytest.fixture
def synthesis_response():
    """Builder for raw synthesis responses."""
    return synthesis_payload
