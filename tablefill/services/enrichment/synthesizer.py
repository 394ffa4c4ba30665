"""Reconcile provider answers into one typed, sourced cell value."""

import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import StrictFloat, StrictInt, StrictStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from tablefill.core.exceptions import AppError, SynthesisError
from tablefill.core.llm_client import ChatCompletionsClient
from tablefill.prompts.system_prompts import ANSWER_SYNTHESIS_PROMPT, SYNTHESIS_QUESTION_TEMPLATE
from tablefill.schemas.enrichment import ProviderAnswer, SynthesisMetadata, SynthesizedAnswer
from tablefill.schemas.table import ColumnType
from tablefill.services.enrichment.schema_builder import build_synthesis_schema
from tablefill.utils.json_parser import extract_urls, parse_json_strict
from tablefill.utils.logging import get_logger

LOGGER = get_logger(__name__)

_RESULT_ADAPTERS: Dict[ColumnType, TypeAdapter] = {
    ColumnType.TEXT: TypeAdapter(StrictStr),
    ColumnType.LINK: TypeAdapter(StrictStr),
    ColumnType.SELECT: TypeAdapter(StrictStr),
    ColumnType.NUMBER: TypeAdapter(Union[StrictInt, StrictFloat]),
    ColumnType.MULTI_SELECT: TypeAdapter(List[StrictStr]),
}


class AnswerSynthesizer:
    """Single schema-constrained model call over all provider answers."""

    def __init__(
        self,
        client: ChatCompletionsClient,
        timeout_seconds: Optional[float] = 60.0,
        temperature: float = 0.0,
    ):
        self.client = client
        self.timeout_seconds = timeout_seconds
        self.temperature = temperature

    async def synthesize(
        self,
        table_name: str,
        column_name: str,
        column_description: Optional[str],
        column_type: Union[ColumnType, str],
        result_schema: Dict[str, Any],
        provider_answers: Sequence[ProviderAnswer],
    ) -> SynthesizedAnswer:
        """Produce ``{result, metadata}`` for one cell.

        Runs even when every provider failed; the model then answers from
        the error texts and whatever it knows.

        Raises:
            SynthesisError: On transport failure, timeout, or a response that
                does not match the output contract
        """
        column_type = ColumnType(column_type)
        question = SYNTHESIS_QUESTION_TEMPLATE.format(
            table_name=table_name,
            column_name=column_name,
            column_description=column_description or "",
            output_type=json.dumps(result_schema, indent=2),
            search_responses=json.dumps(
                [answer.model_dump() for answer in provider_answers], indent=2
            ),
        )

        call = self.client.generate_content(
            contents=question,
            system_instruction=ANSWER_SYNTHESIS_PROMPT,
            generation_config={
                "temperature": self.temperature,
                "response_schema": build_synthesis_schema(result_schema),
                "response_schema_name": "cell_output",
            },
        )

        try:
            if self.timeout_seconds is None:
                raw_response = await call
            else:
                raw_response = await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            LOGGER.error(f"Synthesis for column '{column_name}' timed out after {self.timeout_seconds}s")
            raise SynthesisError(
                f"Synthesis timed out after {self.timeout_seconds}s", original_error=e
            ) from e
        except AppError as e:
            LOGGER.error(f"Synthesis call for column '{column_name}' failed: {e}")
            raise SynthesisError(f"Synthesis call failed: {e}", original_error=e) from e

        answer = self.parse_response(raw_response, column_type)
        answer.metadata.sources = self._merge_sources(answer.metadata.sources, provider_answers)

        LOGGER.info(
            f"Synthesized cell | column: {column_name} | type: {column_type.value} | "
            f"reasoning steps: {len(answer.metadata.reasoning_steps)} | "
            f"sources: {len(answer.metadata.sources)}"
        )
        return answer

    @staticmethod
    def parse_response(raw_response: str, column_type: Union[ColumnType, str]) -> SynthesizedAnswer:
        """Strictly parse and validate a synthesis response.

        Raises:
            SynthesisError: If the text is not JSON or does not match the contract
        """
        column_type = ColumnType(column_type)
        try:
            payload = parse_json_strict(raw_response)
        except ValueError as e:
            LOGGER.error(f"Error parsing model response: {e} | message: {raw_response!r}")
            raise SynthesisError(
                f"Model response is not valid JSON: {e}",
                raw_response=raw_response,
                original_error=e,
            ) from e

        if not isinstance(payload, dict) or "result" not in payload:
            LOGGER.error(f"Model response is missing 'result' | message: {raw_response!r}")
            raise SynthesisError("Model response is missing 'result'", raw_response=raw_response)

        try:
            result = _RESULT_ADAPTERS[column_type].validate_python(payload["result"])
            metadata = SynthesisMetadata.model_validate(payload["metadata"])
        except KeyError as e:
            LOGGER.error(f"Model response is missing 'metadata' | message: {raw_response!r}")
            raise SynthesisError(
                "Model response is missing 'metadata'", raw_response=raw_response, original_error=e
            ) from e
        except PydanticValidationError as e:
            LOGGER.error(
                f"Model response does not match the {column_type.value} contract: {e} | "
                f"message: {raw_response!r}"
            )
            raise SynthesisError(
                f"Model response does not match the {column_type.value} column contract",
                raw_response=raw_response,
                original_error=e,
            ) from e

        if isinstance(result, str):
            result = result.strip()
        elif isinstance(result, list):
            result = [item.strip() for item in result]

        metadata.reasoning_steps = [step.strip() for step in metadata.reasoning_steps if step.strip()]
        return SynthesizedAnswer(result=result, metadata=metadata)

    @staticmethod
    def _merge_sources(sources: List[str], provider_answers: Sequence[ProviderAnswer]) -> List[str]:
        """Add URLs the model missed from successful provider answers."""
        merged: List[str] = []
        seen = set()
        candidates = [source.strip() for source in sources]
        for answer in provider_answers:
            if not answer.failed:
                candidates.extend(extract_urls(answer.response))
        for url in candidates:
            if url and url not in seen:
                seen.add(url)
                merged.append(url)
        return merged
