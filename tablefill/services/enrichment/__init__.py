"""Cell enrichment pipeline.

1. SearchProvider adapters - OpenAI, Perplexity and Google web-search backends
2. ProviderFanOut - asks every provider concurrently, isolating failures
3. build_result_schema - JSON Schema for the column's ``result`` field
4. AnswerSynthesizer - reconciles provider answers into a typed, sourced value
5. CategoricalReconciler - maps labels onto a select/multiSelect vocabulary
6. CellEnrichmentService - coordinates the steps above for one or many cells
"""

from tablefill.services.enrichment.cell_enrichment_service import (
    CELL_ERROR_MESSAGE,
    CellEnrichmentService,
    create_cell_enrichment_service,
)
from tablefill.services.enrichment.fan_out import ProviderFanOut
from tablefill.services.enrichment.providers import (
    GeminiSearchProvider,
    OpenAISearchProvider,
    PerplexitySearchProvider,
    SearchProvider,
    create_search_providers,
)
from tablefill.services.enrichment.reconciler import (
    SELECT_COLORS,
    CategoricalReconciler,
    parse_selected_values,
)
from tablefill.services.enrichment.schema_builder import build_result_schema
from tablefill.services.enrichment.synthesizer import AnswerSynthesizer
from tablefill.services.enrichment.vocabulary import (
    InMemoryVocabularyStore,
    KeyedLockRegistry,
    VocabularyStore,
)

__all__ = [
    "AnswerSynthesizer",
    "CELL_ERROR_MESSAGE",
    "CategoricalReconciler",
    "CellEnrichmentService",
    "GeminiSearchProvider",
    "InMemoryVocabularyStore",
    "KeyedLockRegistry",
    "OpenAISearchProvider",
    "PerplexitySearchProvider",
    "ProviderFanOut",
    "SELECT_COLORS",
    "SearchProvider",
    "VocabularyStore",
    "build_result_schema",
    "create_cell_enrichment_service",
    "create_search_providers",
    "parse_selected_values",
]
