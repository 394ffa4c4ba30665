"""Unit tests for settings."""

import pytest
from pydantic import ValidationError

from tablefill.core.config import EnrichmentSettings, ProviderSettings, Settings


class TestProviderSettings:
    """Test suite for ProviderSettings."""

    def test_enabled_providers_from_env(self, monkeypatch):
        monkeypatch.setenv("ENABLED_PROVIDERS", " Gemini , openai ")

        provider_settings = ProviderSettings()

        assert provider_settings.enabled_providers == ["gemini", "openai"]

    def test_enabled_providers_default_order(self, monkeypatch):
        monkeypatch.delenv("ENABLED_PROVIDERS", raising=False)

        assert ProviderSettings().enabled_providers == ["openai", "perplexity", "gemini"]

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValidationError, match="Unknown providers: bing"):
            ProviderSettings(ENABLED_PROVIDERS="openai,bing")

    def test_keys_from_env(self, monkeypatch):
        monkeypatch.setenv("PERPLEXITY_API_KEY", "pplx-123")

        assert ProviderSettings().perplexity_api_key == "pplx-123"


class TestSettings:
    """Test suite for Settings."""

    def test_convenience_properties(self):
        app_settings = Settings(
            providers=ProviderSettings(OPENAI_API_KEY="k", ENABLED_PROVIDERS="openai"),
            enrichment=EnrichmentSettings(
                SYNTHESIS_MODEL="gpt-4o-mini",
                PROVIDER_TIMEOUT_SECONDS=5,
                SYNTHESIS_TIMEOUT_SECONDS=7,
                MAX_CONCURRENT_CELLS=2,
            ),
        )

        assert app_settings.openai_api_key == "k"
        assert app_settings.enabled_providers == ["openai"]
        assert app_settings.synthesis_model == "gpt-4o-mini"
        assert app_settings.provider_timeout_seconds == 5
        assert app_settings.synthesis_timeout_seconds == 7
        assert app_settings.max_concurrent_cells == 2

    def test_enrichment_timeouts_from_env(self, monkeypatch):
        monkeypatch.setenv("PROVIDER_TIMEOUT_SECONDS", "15")

        assert Settings().provider_timeout_seconds == 15.0
