"""Unit tests for table and enrichment models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import TypeAdapter, ValidationError

from tablefill.schemas.enrichment import (
    CellEnrichmentRequest,
    CellValue,
    MultiValue,
    ProviderAnswer,
    SingleValue,
)
from tablefill.schemas.table import Column, ColumnType, EnrichmentMetadata, Row


class TestColumn:
    """Test suite for Column."""

    def test_parses_stored_document_shape(self):
        column = Column.model_validate({
            "id": "col-vibe",
            "name": "Vibe",
            "type": "multiSelect",
            "additionalTypeInformation": {
                "selectItems": [{"id": "1", "name": "Casual", "color": "#FF8F37"}],
            },
        })

        assert column.type == ColumnType.MULTI_SELECT
        assert column.is_categorical
        assert [item.name for item in column.select_items] == ["Casual"]

    def test_duplicate_select_names_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate select item"):
            Column.model_validate({
                "name": "Cuisine",
                "type": "select",
                "additionalTypeInformation": {"selectItems": [
                    {"name": "Italian", "color": "#FF8F37"},
                    {"name": "ITALIAN", "color": "#FFB347"},
                ]},
            })

    def test_type_information_defaults(self):
        column = Column(name="Notes")

        assert column.type == ColumnType.TEXT
        assert not column.is_categorical
        assert column.select_items == []
        assert column.currency is None
        assert column.decimals is None

    def test_negative_decimals_rejected(self):
        with pytest.raises(ValidationError):
            Column.model_validate({
                "name": "Price",
                "type": "number",
                "additionalTypeInformation": {"decimals": -1},
            })

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            Column(name="When", type="date")

    def test_dump_by_alias(self, number_column):
        dumped = number_column.model_dump(by_alias=True, exclude_none=True)
        assert dumped["additionalTypeInformation"] == {"currency": "EUR", "decimals": 2}


class TestRow:
    """Test suite for Row enrichment history."""

    def test_latest_enrichment(self):
        now = datetime.now(timezone.utc)
        row = Row(table_id="t1")
        row.record_enrichment(EnrichmentMetadata(column_id="c1", sources=["old"], created_at=now - timedelta(hours=1)))
        row.record_enrichment(EnrichmentMetadata(column_id="c2", sources=["other"], created_at=now + timedelta(hours=1)))
        row.record_enrichment(EnrichmentMetadata(column_id="c1", sources=["new"], created_at=now))

        assert row.latest_enrichment("c1").sources == ["new"]
        assert row.latest_enrichment("c3") is None
        assert len(row.enrichments) == 3

    def test_latest_enrichment_tie_goes_to_later_entry(self):
        now = datetime.now(timezone.utc)
        row = Row(table_id="t1")
        row.record_enrichment(EnrichmentMetadata(column_id="c1", sources=["first"], created_at=now))
        row.record_enrichment(EnrichmentMetadata(column_id="c1", sources=["second"], created_at=now))

        assert row.latest_enrichment("c1").sources == ["second"]

    def test_enrichment_metadata_aliases(self):
        metadata = EnrichmentMetadata.model_validate({
            "columnId": "c1",
            "reasoningSteps": ["step"],
            "sources": [],
            "createdAt": "2024-05-01T12:00:00Z",
        })

        assert metadata.reasoning_steps == ["step"]
        assert metadata.created_at.year == 2024


class TestEnrichmentModels:
    """Tests for enrichment request and value models."""

    def test_cell_value_discriminator(self):
        adapter = TypeAdapter(CellValue)

        assert adapter.validate_python({"kind": "single", "value": "Italian"}) == SingleValue(value="Italian")
        multi = adapter.validate_python({"kind": "multi", "values": ["Casual", "Upscale"]})
        assert isinstance(multi, MultiValue)
        assert multi.to_storage() == "Casual, Upscale"

    def test_request_accepts_camel_case(self, select_column):
        request = CellEnrichmentRequest.model_validate({
            "tableId": "t1",
            "tableName": "Berlin Restaurants",
            "column": select_column.model_dump(by_alias=True),
            "rowId": "r1",
            "existingRowData": {"col-name": "Trattoria Da Enzo"},
        })

        assert request.table_description is None
        assert request.column.select_items[0].name == "Italian"

    def test_provider_answer_failed_flag_defaults_false(self):
        assert ProviderAnswer(provider="OpenAI", response="x").failed is False
