"""Table, column and row models shared with the table store.

Field aliases follow the stored (camelCase) document shape; Python code
uses the snake_case names.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ColumnType(str, Enum):
    """Declared type of a spreadsheet column."""

    TEXT = "text"
    NUMBER = "number"
    LINK = "link"
    SELECT = "select"
    MULTI_SELECT = "multiSelect"

    @property
    def is_categorical(self) -> bool:
        return self in (ColumnType.SELECT, ColumnType.MULTI_SELECT)


class SelectItem(BaseModel):
    """One entry of a categorical column's vocabulary."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    color: str


class AdditionalTypeInformation(BaseModel):
    """Type-specific column metadata."""

    model_config = ConfigDict(populate_by_name=True)

    select_items: Optional[List[SelectItem]] = Field(default=None, alias="selectItems")
    currency: Optional[str] = None
    decimals: Optional[int] = Field(default=None, ge=0)


class Column(BaseModel):
    """Spreadsheet column definition."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    type: ColumnType = ColumnType.TEXT
    description: str = ""
    additional_type_information: Optional[AdditionalTypeInformation] = Field(
        default=None,
        alias="additionalTypeInformation",
    )

    @model_validator(mode="after")
    def _select_names_unique(self) -> "Column":
        if not self.type.is_categorical:
            return self
        seen = set()
        for item in self.select_items:
            key = item.name.casefold()
            if key in seen:
                raise ValueError(
                    f"Duplicate select item '{item.name}' in column '{self.name}' "
                    "(names are compared case-insensitively)"
                )
            seen.add(key)
        return self

    @property
    def is_categorical(self) -> bool:
        return self.type.is_categorical

    @property
    def select_items(self) -> List[SelectItem]:
        info = self.additional_type_information
        if info is None or info.select_items is None:
            return []
        return list(info.select_items)

    @property
    def currency(self) -> Optional[str]:
        info = self.additional_type_information
        return info.currency if info else None

    @property
    def decimals(self) -> Optional[int]:
        info = self.additional_type_information
        return info.decimals if info else None


class EnrichmentMetadata(BaseModel):
    """Provenance attached to one fill of one cell."""

    model_config = ConfigDict(populate_by_name=True)

    column_id: str = Field(alias="columnId")
    reasoning_steps: List[str] = Field(default_factory=list, alias="reasoningSteps")
    sources: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")


class Row(BaseModel):
    """A table row with its cell data and enrichment history."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    table_id: str = Field(alias="tableId")
    data: Dict[str, Any] = Field(default_factory=dict)
    enrichments: List[EnrichmentMetadata] = Field(default_factory=list)

    def record_enrichment(self, metadata: EnrichmentMetadata) -> None:
        """Append provenance for a cell fill. Earlier entries are kept."""
        self.enrichments.append(metadata)

    def latest_enrichment(self, column_id: str) -> Optional[EnrichmentMetadata]:
        """Most recent provenance for a column, or None if never enriched."""
        latest: Optional[EnrichmentMetadata] = None
        for entry in self.enrichments:
            if entry.column_id != column_id:
                continue
            # Ties go to the later append
            if latest is None or entry.created_at >= latest.created_at:
                latest = entry
        return latest
