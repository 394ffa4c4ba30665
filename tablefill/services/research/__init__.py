"""Table bootstrapping helpers: column suggestions and candidate rows."""

from tablefill.services.research.column_suggestion_service import (
    ColumnSuggestionService,
    create_column_suggestion_service,
)
from tablefill.services.research.row_generation_service import (
    RowGenerationService,
    create_row_generation_service,
)

__all__ = [
    "ColumnSuggestionService",
    "RowGenerationService",
    "create_column_suggestion_service",
    "create_row_generation_service",
]
