"""Application configuration."""

import os
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from tablefill.utils.logging import get_logger

LOGGER = get_logger(__name__)

KNOWN_PROVIDERS = ("openai", "perplexity", "gemini")


# Find .env file - check multiple possible locations
def find_env_file() -> Optional[Path]:
    """Find .env file in multiple possible locations."""
    current_dir = os.path.dirname(os.path.abspath(__file__))

    possible_paths = [
        os.path.join(os.getcwd(), ".env"),
        os.path.join(os.path.dirname(current_dir), ".env"),
        os.path.join(os.path.dirname(os.path.dirname(current_dir)), ".env"),
    ]

    for path_str in possible_paths:
        if os.path.exists(path_str):
            path = Path(path_str)
            LOGGER.info(f"Found .env file at: {path}")
            return path

    LOGGER.debug("No .env file found in expected locations")
    return None


ENV_FILE = find_env_file()


class ProviderSettings(BaseSettings):
    """Web-search provider credentials and models."""

    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    openai_api_url: str = Field(
        default="https://api.openai.com/v1/chat/completions",
        validation_alias="OPENAI_API_URL",
    )
    openai_search_model: str = Field(default="gpt-4o-search-preview", validation_alias="OPENAI_SEARCH_MODEL")

    perplexity_api_key: str = Field(default="", validation_alias="PERPLEXITY_API_KEY")
    perplexity_api_url: str = Field(
        default="https://api.perplexity.ai/chat/completions",
        validation_alias="PERPLEXITY_API_URL",
    )
    perplexity_model: str = Field(default="sonar-pro", validation_alias="PERPLEXITY_MODEL")

    gemini_api_key: str = Field(default="", validation_alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.0-flash", validation_alias="GEMINI_MODEL")

    # Ordered; fan-out answers come back in this order
    enabled_providers: Annotated[List[str], NoDecode] = Field(
        default=["openai", "perplexity", "gemini"],
        validation_alias="ENABLED_PROVIDERS",
    )
    provider_max_retries: int = Field(default=1, validation_alias="PROVIDER_MAX_RETRIES")

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="",
    )

    @field_validator("enabled_providers", mode="before")
    @classmethod
    def _split_provider_list(cls, value):
        if isinstance(value, str):
            value = value.split(",")
        return [str(part).strip().lower() for part in value if str(part).strip()]

    @field_validator("enabled_providers")
    @classmethod
    def _check_known_providers(cls, value: List[str]) -> List[str]:
        unknown = [name for name in value if name not in KNOWN_PROVIDERS]
        if unknown:
            raise ValueError(f"Unknown providers: {', '.join(unknown)}")
        return value


class EnrichmentSettings(BaseSettings):
    """Cell enrichment pipeline settings."""

    synthesis_model: str = Field(default="gpt-4o-mini-2024-07-18", validation_alias="SYNTHESIS_MODEL")
    synthesis_temperature: float = Field(default=0.0, validation_alias="SYNTHESIS_TEMPERATURE")

    # Bounds on every external call
    provider_timeout_seconds: float = Field(default=60.0, validation_alias="PROVIDER_TIMEOUT_SECONDS")
    synthesis_timeout_seconds: float = Field(default=60.0, validation_alias="SYNTHESIS_TIMEOUT_SECONDS")

    max_concurrent_cells: int = Field(default=8, validation_alias="MAX_CONCURRENT_CELLS")

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="",
    )


class Settings(BaseSettings):
    """Unified application settings with nested models."""

    app_name: str = Field(default="tablefill", validation_alias="APP_NAME")
    app_version: str = "0.1.0"
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Timeout Settings
    http_timeout: int = Field(default=60, validation_alias="HTTP_TIMEOUT")

    # Rate Limiting
    retry_delay: int = Field(default=2, validation_alias="RETRY_DELAY")

    providers: ProviderSettings = Field(default_factory=lambda: ProviderSettings())
    enrichment: EnrichmentSettings = Field(default_factory=lambda: EnrichmentSettings())

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def openai_api_key(self) -> str:
        return self.providers.openai_api_key

    @property
    def perplexity_api_key(self) -> str:
        return self.providers.perplexity_api_key

    @property
    def gemini_api_key(self) -> str:
        return self.providers.gemini_api_key

    @property
    def enabled_providers(self) -> List[str]:
        return self.providers.enabled_providers

    @property
    def synthesis_model(self) -> str:
        return self.enrichment.synthesis_model

    @property
    def provider_timeout_seconds(self) -> float:
        return self.enrichment.provider_timeout_seconds

    @property
    def synthesis_timeout_seconds(self) -> float:
        return self.enrichment.synthesis_timeout_seconds

    @property
    def max_concurrent_cells(self) -> int:
        return self.enrichment.max_concurrent_cells


settings = Settings()

LOGGER.info(f"Settings initialized with environment: {settings.environment}")
LOGGER.info(
    f"Providers enabled: {', '.join(settings.enabled_providers)} | "
    f"OpenAI key: {bool(settings.openai_api_key)}, "
    f"Perplexity key: {bool(settings.perplexity_api_key)}, "
    f"Gemini key: {bool(settings.gemini_api_key)}"
)
