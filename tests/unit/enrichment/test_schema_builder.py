"""Unit tests for result schema construction."""

import pytest

from tablefill.schemas.table import ColumnType
from tablefill.services.enrichment.schema_builder import build_result_schema, build_synthesis_schema


def _result(schema):
    return schema["properties"]["result"]


class TestBuildResultSchema:
    """Test suite for build_result_schema."""

    @pytest.mark.parametrize("column_type", list(ColumnType))
    def test_wrapper_is_strict(self, column_type):
        schema = build_result_schema(column_type)

        assert schema["type"] == "object"
        assert schema["additionalProperties"] is False
        assert schema["required"] == ["result"]
        assert list(schema["properties"]) == ["result"]

    def test_text(self):
        assert _result(build_result_schema(ColumnType.TEXT)) == {"type": "string"}

    def test_plain_number_has_no_description(self):
        assert _result(build_result_schema("number")) == {"type": "number"}

    def test_number_with_currency_and_decimals(self):
        result = _result(build_result_schema(ColumnType.NUMBER, currency="EUR", decimals=2))

        assert result["type"] == "number"
        assert "EUR" in result["description"]
        assert "2 decimal places" in result["description"]

    def test_link(self):
        result = _result(build_result_schema(ColumnType.LINK))

        assert result["type"] == "string"
        assert "format" not in result
        assert "URL" in result["description"]

    def test_select_lists_existing_categories(self):
        result = _result(build_result_schema(ColumnType.SELECT, existing_categories=["Italian", "Thai"]))

        assert result["type"] == "string"
        assert "Existing categories: Italian, Thai." in result["description"]
        assert "suggest a new one" in result["description"]

    def test_select_without_categories(self):
        result = _result(build_result_schema(ColumnType.SELECT, existing_categories=[]))
        assert "There are no existing categories yet." in result["description"]

    def test_multi_select_is_array_of_strings(self):
        result = _result(build_result_schema(ColumnType.MULTI_SELECT, existing_categories=["Casual"]))

        assert result["type"] == "array"
        assert result["items"] == {"type": "string"}
        assert "Existing categories: Casual." in result["description"]
        assert "suggest new ones" in result["description"]

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            build_result_schema("date")


class TestBuildSynthesisSchema:
    """Test suite for build_synthesis_schema."""

    def test_adds_required_metadata(self):
        result_schema = build_result_schema(ColumnType.MULTI_SELECT, existing_categories=["Casual"])
        schema = build_synthesis_schema(result_schema)

        assert schema["required"] == ["result", "metadata"]
        assert schema["additionalProperties"] is False
        assert schema["properties"]["result"] == _result(result_schema)

        metadata = schema["properties"]["metadata"]
        assert metadata["additionalProperties"] is False
        assert metadata["required"] == ["reasoningSteps", "sources"]
        assert metadata["properties"]["sources"]["items"] == {"type": "string"}

    def test_does_not_mutate_result_schema(self):
        result_schema = build_result_schema(ColumnType.TEXT)
        build_synthesis_schema(result_schema)

        assert result_schema["required"] == ["result"]
        assert "metadata" not in result_schema["properties"]
