"""Pydantic schemas for the cell enrichment pipeline."""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from tablefill.schemas.table import Column, EnrichmentMetadata, SelectItem

MULTI_VALUE_SEPARATOR = ", "


class ProviderAnswer(BaseModel):
    """Raw answer (or error text) from one search provider."""

    provider: str
    response: str
    failed: bool = Field(default=False, exclude=True)


class SingleValue(BaseModel):
    """Value of a select cell."""

    kind: Literal["single"] = "single"
    value: str = ""

    def to_storage(self) -> str:
        return self.value


class MultiValue(BaseModel):
    """Value of a multiSelect cell."""

    kind: Literal["multi"] = "multi"
    values: List[str] = Field(default_factory=list)

    def to_storage(self) -> str:
        return MULTI_VALUE_SEPARATOR.join(self.values)


CellValue = Annotated[Union[SingleValue, MultiValue], Field(discriminator="kind")]


class SynthesisMetadata(BaseModel):
    """Provenance produced by the synthesis call."""

    model_config = ConfigDict(populate_by_name=True)

    reasoning_steps: List[str] = Field(default_factory=list, alias="reasoningSteps")
    sources: List[str] = Field(default_factory=list)


class SynthesizedAnswer(BaseModel):
    """Validated output of the synthesis call.

    ``result`` is a str for text/link/select, a number for number and a list
    of str for multiSelect columns.
    """

    result: Union[List[str], float, int, str]
    metadata: SynthesisMetadata = Field(default_factory=SynthesisMetadata)


class ReconciliationResult(BaseModel):
    """Outcome of reconciling suggested labels with a column vocabulary."""

    value: CellValue
    new_items: List[SelectItem] = Field(default_factory=list)
    # Full vocabulary; only set when at least one item was added
    updated_select_items: Optional[List[SelectItem]] = None

    @property
    def final_value(self) -> str:
        return self.value.to_storage()


class CellEnrichmentRequest(BaseModel):
    """Everything the pipeline needs to fill one cell."""

    model_config = ConfigDict(populate_by_name=True)

    table_id: str = Field(alias="tableId")
    table_name: str = Field(alias="tableName")
    table_description: Optional[str] = Field(default=None, alias="tableDescription")
    column: Column
    row_id: Optional[str] = Field(default=None, alias="rowId")
    existing_row_data: Dict[str, Any] = Field(default_factory=dict, alias="existingRowData")


class CellEnrichmentResult(BaseModel):
    """Filled value plus provenance, returned to the caller for persistence."""

    column_id: str
    # Synthesizer output as returned by the model
    result: Union[List[str], float, int, str]
    # Value to store in the row (canonicalized for categorical columns)
    value: Union[float, int, str]
    cell_value: Optional[CellValue] = None
    metadata: EnrichmentMetadata
    provider_answers: List[ProviderAnswer] = Field(default_factory=list)
    updated_select_items: Optional[List[SelectItem]] = None


class CellFillStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class CellFillOutcome(BaseModel):
    """Per-cell outcome of a batch fill."""

    row_id: Optional[str] = None
    column_id: str
    status: CellFillStatus
    result: Optional[CellEnrichmentResult] = None
    error: Optional[str] = None
