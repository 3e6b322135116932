"""
Tests for environment-driven configuration.
"""

import pytest
from pydantic import ValidationError

from finboard.config import AppSettings, GeminiSettings, Settings, validate_all_settings


class TestAppSettings:
    """Tests for AppSettings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("APP_STORAGE_BACKEND", raising=False)
        monkeypatch.delenv("APP_DEFAULT_CURRENCY", raising=False)
        settings = AppSettings()
        assert settings.storage_backend == "ephemeral"
        assert settings.uses_persisted_store is False
        assert settings.default_currency == "TWD"

    def test_persisted_backend_from_env(self, monkeypatch):
        monkeypatch.setenv("APP_STORAGE_BACKEND", "persisted")
        assert AppSettings().uses_persisted_store is True

    def test_unknown_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("APP_STORAGE_BACKEND", "firestore")
        with pytest.raises(ValidationError):
            AppSettings()

    def test_currency_uppercased(self, monkeypatch):
        monkeypatch.setenv("APP_DEFAULT_CURRENCY", "usd")
        assert AppSettings().default_currency == "USD"


class TestGeminiSettings:
    """Tests for GeminiSettings."""

    def test_api_key_required(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        with pytest.raises(ValidationError):
            GeminiSettings()

    def test_model_names_from_env(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "k")
        monkeypatch.setenv("GEMINI_PRICE_MODEL_NAME", "gemini-2.0-flash")
        settings = GeminiSettings()
        assert settings.price_model_name == "gemini-2.0-flash"
        assert settings.advice_model_name == "gemini-1.5-flash"



class TestValidateAllSettings:
    """Tests for the startup configuration report."""

    def test_missing_gemini_key_reported(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("APP_STORAGE_BACKEND", raising=False)
        status = validate_all_settings(Settings())
        assert status["gemini"] is False
        assert "gemini_error" in status
        assert status["app"] is True

    def test_configured_gemini_reported(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "k")
        status = validate_all_settings(Settings())
        assert status["gemini"] is True
        assert "gemini_error" not in status


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
