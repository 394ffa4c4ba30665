"""Suggest table columns for a research prompt."""

from typing import List, Optional

from tablefill.core.config import Settings, settings as default_settings
from tablefill.core.exceptions import ConfigurationError, ValidationError
from tablefill.core.llm_client import ChatCompletionsClient
from tablefill.prompts.system_prompts import (
    COLUMN_SUGGESTION_EXAMPLE,
    COLUMN_SUGGESTION_PROMPT,
    COLUMN_SUGGESTION_QUESTION_TEMPLATE,
)
from tablefill.utils.logging import get_logger

LOGGER = get_logger(__name__)

MAX_PROMPT_LENGTH = 500


class ColumnSuggestionService:
    """Turns a free-text research goal into column names."""

    def __init__(self, client: ChatCompletionsClient, temperature: float = 0.7, max_output_tokens: int = 150):
        self.client = client
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    async def suggest_columns(self, prompt: str) -> List[str]:
        """
        Raises:
            ValidationError: If the prompt is empty or longer than 500 characters
            APIClientError: If the model call fails
        """
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValidationError("Research prompt must not be empty")
        if len(prompt) > MAX_PROMPT_LENGTH:
            raise ValidationError(f"Research prompt must be at most {MAX_PROMPT_LENGTH} characters")

        columns_text = await self.client.generate_content(
            contents=[
                COLUMN_SUGGESTION_EXAMPLE,
                COLUMN_SUGGESTION_QUESTION_TEMPLATE.format(prompt=prompt),
            ],
            system_instruction=COLUMN_SUGGESTION_PROMPT,
            generation_config={
                "temperature": self.temperature,
                "max_output_tokens": self.max_output_tokens,
            },
        )

        columns = self.split_columns(columns_text)
        LOGGER.info(f"Suggested {len(columns)} columns for prompt '{prompt[:60]}'")
        return columns

    @staticmethod
    def split_columns(columns_text: str) -> List[str]:
        text = (columns_text or "").strip()
        # Models sometimes echo the example's "Output:" label
        if text.lower().startswith("output:"):
            text = text[len("output:"):]

        columns: List[str] = []
        seen = set()
        for part in text.split(","):
            name = part.strip().strip('"').strip()
            if name and name.casefold() not in seen:
                seen.add(name.casefold())
                columns.append(name)
        return columns


def create_column_suggestion_service(app_settings: Optional[Settings] = None) -> ColumnSuggestionService:
    """Build the service from configuration.

    Raises:
        ConfigurationError: If OPENAI_API_KEY is missing
    """
    app_settings = app_settings or default_settings
    if not app_settings.openai_api_key:
        raise ConfigurationError("OPENAI_API_KEY is required for column suggestions.")

    client = ChatCompletionsClient(
        api_key=app_settings.openai_api_key,
        model=app_settings.synthesis_model,
        base_url=app_settings.providers.openai_api_url,
        timeout=app_settings.http_timeout,
        retry_delay=app_settings.retry_delay,
    )
    return ColumnSuggestionService(client)
