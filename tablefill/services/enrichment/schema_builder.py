"""JSON Schemas describing the expected ``result`` of a cell fill."""

from typing import Any, Dict, Optional, Sequence, Union

from tablefill.schemas.table import ColumnType


def _category_description(existing_categories: Optional[Sequence[str]], plural: bool) -> str:
    names = [name for name in (existing_categories or []) if name]
    listing = f" Existing categories: {', '.join(names)}." if names else " There are no existing categories yet."
    if plural:
        return (
            "One or more categories for this cell." + listing
            + " Prefer existing categories; if none match, suggest new ones."
        )
    return (
        "A single category for this cell." + listing
        + " Prefer an existing category; if none match, suggest a new one."
    )


def _number_description(currency: Optional[str], decimals: Optional[int]) -> Optional[str]:
    parts = []
    if currency:
        parts.append(f"Amount in {currency}, as a bare number without currency symbols.")
    if decimals is not None:
        parts.append(f"Round to {decimals} decimal places.")
    return " ".join(parts) or None


def build_result_schema(
    column_type: Union[ColumnType, str],
    existing_categories: Optional[Sequence[str]] = None,
    currency: Optional[str] = None,
    decimals: Optional[int] = None,
) -> Dict[str, Any]:
    """Build the strict object schema wrapping a single ``result`` field.

    Args:
        column_type: Declared column type
        existing_categories: Vocabulary names for select/multiSelect columns
        currency: Currency code for number columns
        decimals: Decimal places for number columns

    Returns:
        JSON Schema dict with ``additionalProperties: false`` and ``required: ["result"]``
    """
    column_type = ColumnType(column_type)

    if column_type == ColumnType.TEXT:
        result_schema: Dict[str, Any] = {"type": "string"}
    elif column_type == ColumnType.NUMBER:
        result_schema = {"type": "number"}
        description = _number_description(currency, decimals)
        if description:
            result_schema["description"] = description
    elif column_type == ColumnType.LINK:
        # "format": "uri" is not accepted by strict structured outputs
        result_schema = {"type": "string", "description": "A single absolute URL."}
    elif column_type == ColumnType.SELECT:
        result_schema = {
            "type": "string",
            "description": _category_description(existing_categories, plural=False),
        }
    else:
        result_schema = {
            "type": "array",
            "items": {"type": "string"},
            "description": _category_description(existing_categories, plural=True),
        }

    return {
        "type": "object",
        "properties": {
            "result": result_schema,
        },
        "additionalProperties": False,
        "required": ["result"],
    }


def build_synthesis_schema(result_schema: Dict[str, Any]) -> Dict[str, Any]:
    """Extend a result schema with the provenance ``metadata`` object."""
    return {
        "type": "object",
        "properties": {
            "result": result_schema["properties"]["result"],
            "metadata": {
                "type": "object",
                "properties": {
                    "reasoningSteps": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Short ordered steps explaining how the result was chosen.",
                    },
                    "sources": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Every URL that appears in any search response.",
                    },
                },
                "additionalProperties": False,
                "required": ["reasoningSteps", "sources"],
            },
        },
        "additionalProperties": False,
        "required": ["result", "metadata"],
    }
