"""Cell enrichment pipeline.

fan-out to search providers -> schema-constrained synthesis -> (categorical
columns only) vocabulary reconciliation. The service never persists rows or
tables; it returns values and provenance for the caller to store.
"""

import asyncio
import json
from contextlib import AsyncExitStack
from typing import List, Optional, Sequence

from tablefill.core.config import Settings, settings as default_settings
from tablefill.core.exceptions import AppError, ConfigurationError, EnrichmentError
from tablefill.core.llm_client import ChatCompletionsClient
from tablefill.prompts.system_prompts import CELL_QUESTION_TEMPLATE
from tablefill.schemas.enrichment import (
    CellEnrichmentRequest,
    CellEnrichmentResult,
    CellFillOutcome,
    CellFillStatus,
)
from tablefill.schemas.table import Column, ColumnType, EnrichmentMetadata, Row, SelectItem
from tablefill.services.enrichment.fan_out import ProviderFanOut
from tablefill.services.enrichment.providers import create_search_providers
from tablefill.services.enrichment.reconciler import CategoricalReconciler
from tablefill.services.enrichment.schema_builder import build_result_schema
from tablefill.services.enrichment.synthesizer import AnswerSynthesizer
from tablefill.services.enrichment.vocabulary import (
    InMemoryVocabularyStore,
    KeyedLockRegistry,
    VocabularyStore,
)
from tablefill.utils.logging import get_logger

LOGGER = get_logger(__name__)

CELL_ERROR_MESSAGE = "error enriching cell"


class CellEnrichmentService:
    """Fills spreadsheet cells with researched, typed, sourced values."""

    def __init__(
        self,
        fan_out: ProviderFanOut,
        synthesizer: AnswerSynthesizer,
        reconciler: Optional[CategoricalReconciler] = None,
        vocabulary_store: Optional[VocabularyStore] = None,
        lock_registry: Optional[KeyedLockRegistry] = None,
        max_concurrent_cells: int = 8,
    ):
        """
        Args:
            fan_out: Provider fan-out used for every cell
            synthesizer: Answer synthesizer
            reconciler: Categorical reconciler (default palette if omitted)
            vocabulary_store: Vocabulary source of truth; defaults to a
                process-local store owned by this service
            lock_registry: Per-column locks guarding vocabulary updates
            max_concurrent_cells: Upper bound on cells filled at once by ``enrich_cells``
        """
        self.fan_out = fan_out
        self.synthesizer = synthesizer
        self.reconciler = reconciler or CategoricalReconciler()
        self.vocabulary_store = vocabulary_store if vocabulary_store is not None else InMemoryVocabularyStore()
        self.vocabulary_locks = lock_registry if lock_registry is not None else KeyedLockRegistry()
        self.max_concurrent_cells = max(1, max_concurrent_cells)

    @staticmethod
    def build_question(request: CellEnrichmentRequest, existing_categories: Sequence[str] = ()) -> str:
        column = request.column
        type_hint = ""
        if column.is_categorical and existing_categories:
            type_hint = f"Existing categories for this column: {', '.join(existing_categories)}. "
        elif column.type == ColumnType.NUMBER and column.currency:
            type_hint = f"Values are amounts in {column.currency}. "

        return CELL_QUESTION_TEMPLATE.format(
            table_name=request.table_name,
            table_description=request.table_description or "",
            column_name=column.name,
            column_description=column.description or "",
            column_type=column.type.value,
            type_hint=type_hint,
            row_data=json.dumps(request.existing_row_data, default=str),
        )

    async def enrich_cell(self, request: CellEnrichmentRequest) -> CellEnrichmentResult:
        """Fill one cell.

        Raises:
            SynthesisError: If the synthesis call fails or returns an invalid payload.
                Provider failures never raise; they are passed to synthesis as
                error-tagged answers.
        """
        if not request.column.is_categorical:
            return await self._enrich_cell(request)
        async with self.vocabulary_store.session(request.table_id, request.column.id):
            return await self._enrich_cell(request)

    async def _enrich_cell(self, request: CellEnrichmentRequest) -> CellEnrichmentResult:
        column = request.column
        existing_categories: List[str] = []
        if column.is_categorical:
            current_items = await self.vocabulary_store.load(request.table_id, column)
            existing_categories = [item.name for item in current_items]

        result_schema = build_result_schema(
            column.type,
            existing_categories=existing_categories,
            currency=column.currency,
            decimals=column.decimals,
        )
        question = self.build_question(request, existing_categories)

        LOGGER.info(
            f"Enriching cell | table: {request.table_name} | column: {column.name} | "
            f"type: {column.type.value} | row: {request.row_id}"
        )
        provider_answers = await self.fan_out.ask_all(question)

        synthesized = await self.synthesizer.synthesize(
            table_name=request.table_name,
            column_name=column.name,
            column_description=column.description,
            column_type=column.type,
            result_schema=result_schema,
            provider_answers=provider_answers,
        )

        value = synthesized.result
        cell_value = None
        updated_select_items: Optional[List[SelectItem]] = None
        if column.is_categorical:
            cell_value, updated_select_items = await self._reconcile(request.table_id, column, synthesized.result)
            value = cell_value.to_storage()

        metadata = EnrichmentMetadata(
            column_id=column.id,
            reasoning_steps=synthesized.metadata.reasoning_steps,
            sources=synthesized.metadata.sources,
        )

        return CellEnrichmentResult(
            column_id=column.id,
            result=synthesized.result,
            value=value,
            cell_value=cell_value,
            metadata=metadata,
            provider_answers=provider_answers,
            updated_select_items=updated_select_items,
        )

    async def _reconcile(self, table_id: str, column: Column, result):
        async with self.vocabulary_locks.hold((table_id, column.id)):
            current_items = await self.vocabulary_store.load(table_id, column)
            reconciliation = self.reconciler.reconcile(column.type, result, current_items)

            updated_select_items = None
            if reconciliation.new_items:
                updated_select_items = await self.vocabulary_store.add_if_absent(
                    table_id, column, reconciliation.new_items
                )
        return reconciliation.value, updated_select_items

    async def enrich_cells(self, requests: Sequence[CellEnrichmentRequest]) -> List[CellFillOutcome]:
        """Fill many cells concurrently; one outcome per request, in order.

        A failing cell yields an error outcome and never affects the others.
        Callers should persist ``updated_select_items`` from the results before
        the next batch; the service keeps no vocabulary between batches.
        """
        semaphore = asyncio.Semaphore(self.max_concurrent_cells)

        async def run_one(request: CellEnrichmentRequest) -> CellFillOutcome:
            async with semaphore:
                try:
                    result = await self.enrich_cell(request)
                except AppError as e:
                    LOGGER.error(
                        f"Failed to enrich cell | column: {request.column.name} | row: {request.row_id} | {e}"
                    )
                    return self._error_outcome(request, e)
                except Exception as e:
                    LOGGER.error(
                        f"Unexpected error enriching cell | column: {request.column.name} | row: {request.row_id}",
                        exc_info=True,
                    )
                    return self._error_outcome(request, e)

            return CellFillOutcome(
                row_id=request.row_id,
                column_id=request.column.id,
                status=CellFillStatus.SUCCESS,
                result=result,
            )

        # Items created by earlier cells stay visible to later cells of the batch
        vocabulary_keys = {
            (request.table_id, request.column.id) for request in requests if request.column.is_categorical
        }
        async with AsyncExitStack() as stack:
            for table_id, column_id in vocabulary_keys:
                await stack.enter_async_context(self.vocabulary_store.session(table_id, column_id))
            outcomes = await asyncio.gather(*(run_one(request) for request in requests))

        failed = sum(1 for outcome in outcomes if outcome.status == CellFillStatus.ERROR)
        LOGGER.info(f"Batch enrichment finished | cells: {len(outcomes)} | failed: {failed}")
        return list(outcomes)

    @staticmethod
    def _error_outcome(request: CellEnrichmentRequest, error: Exception) -> CellFillOutcome:
        failure = EnrichmentError(
            request.column.id,
            f"{CELL_ERROR_MESSAGE}: {error}",
            original_error=error,
        )
        return CellFillOutcome(
            row_id=request.row_id,
            column_id=failure.column_id,
            status=CellFillStatus.ERROR,
            error=str(failure),
        )

    @staticmethod
    def apply_to_row(row: Row, result: CellEnrichmentResult) -> Row:
        """Write the value into the row and append its provenance."""
        row.data[result.column_id] = result.value
        row.record_enrichment(result.metadata)
        return row


def create_cell_enrichment_service(
    app_settings: Optional[Settings] = None,
    vocabulary_store: Optional[VocabularyStore] = None,
) -> CellEnrichmentService:
    """Build the service from configuration.

    Raises:
        ConfigurationError: If no provider is usable or the synthesis key is missing
    """
    app_settings = app_settings or default_settings

    providers = create_search_providers(app_settings)
    if not providers:
        raise ConfigurationError(
            "No search providers configured. Set at least one of "
            "OPENAI_API_KEY, PERPLEXITY_API_KEY or GEMINI_API_KEY."
        )
    if not app_settings.openai_api_key:
        raise ConfigurationError("OPENAI_API_KEY is required for answer synthesis.")

    synthesis_client = ChatCompletionsClient(
        api_key=app_settings.openai_api_key,
        model=app_settings.synthesis_model,
        base_url=app_settings.providers.openai_api_url,
        timeout=app_settings.synthesis_timeout_seconds,
        max_retries=1,
        retry_delay=app_settings.retry_delay,
    )

    return CellEnrichmentService(
        fan_out=ProviderFanOut(providers, timeout_seconds=app_settings.provider_timeout_seconds),
        synthesizer=AnswerSynthesizer(
            synthesis_client,
            timeout_seconds=app_settings.synthesis_timeout_seconds,
            temperature=app_settings.enrichment.synthesis_temperature,
        ),
        vocabulary_store=vocabulary_store,
        max_concurrent_cells=app_settings.max_concurrent_cells,
    )
