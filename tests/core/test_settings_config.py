"""
Tests for the properties-file settings layer
"""

import pytest

from jeopardy_trainer.core.services.settings_config_service import (
    SettingsConfigService,
    get_config_file_path,
)


@pytest.fixture
def properties_file(tmp_path):
    path = tmp_path / "env.properties"
    path.write_text(
        "[quiz]\n"
        "recency_lambda = 5.0\n"
        "mastery_threshold = 4\n"
        "\n"
        "[ai]\n"
        "default_provider = openrouter\n"
        "openrouter.model = anthropic/claude-3.5-sonnet\n"
        "\n"
        "[email]\n"
        "admin_email = ops@example.com\n",
        encoding="utf-8",
    )
    return path


class TestSettingsConfigService:
    def test_defaults_without_file(self, tmp_path):
        settings = SettingsConfigService(str(tmp_path / "missing.properties"))

        assert settings.getfloat("quiz", "recency_lambda") == 3.5
        assert settings.getint("quiz", "mastery_threshold") == 3
        assert settings.getint("auth", "token_expiry_minutes") == 30
        assert settings.get("auth", "cookie_name") == "jt_access_token"
        assert settings.getboolean("auth", "cookie_secure") is False

    def test_file_overrides_defaults(self, properties_file):
        settings = SettingsConfigService(str(properties_file))

        assert settings.getfloat("quiz", "recency_lambda") == 5.0
        assert settings.getint("quiz", "mastery_threshold") == 4
        # Untouched keys keep their defaults
        assert settings.getint("coryat", "category_pool_size") == 100

    def test_fallbacks_for_missing_keys(self, tmp_path):
        settings = SettingsConfigService(str(tmp_path / "missing.properties"))

        assert settings.get("nope", "key", "fallback") == "fallback"
        assert settings.get("nope", "key") == ""
        assert settings.getint("nope", "key", 7) == 7
        assert settings.getfloat("nope", "key") == 0.0

    def test_database_url_env_override(self, tmp_path, monkeypatch):
        settings = SettingsConfigService(str(tmp_path / "missing.properties"))
        monkeypatch.delenv("JT_DATABASE_URL", raising=False)
        assert settings.get_database_url() == "sqlite:///jeopardy_trainer.db"

        monkeypatch.setenv("JT_DATABASE_URL", "sqlite:////tmp/other.db")
        assert settings.get_database_url() == "sqlite:////tmp/other.db"

    def test_ai_defaults_per_provider(self, properties_file, monkeypatch):
        settings = SettingsConfigService(str(properties_file))
        monkeypatch.setenv("OPENROUTER_API_KEY", "or-key")

        config = settings.get_ai_config_defaults()
        assert config["default_provider"] == "openrouter"
        assert config["default_model"] == "anthropic/claude-3.5-sonnet"
        assert config["api_key"] == "or-key"
        assert config["endpoint"].startswith("https://openrouter.ai/")

        monkeypatch.setenv("AI_PROVIDER", "ollama")
        config = settings.get_ai_config_defaults()
        assert config["api_key"] is None
        assert config["default_model"] == "llama3"
        assert config["endpoint"] == "http://localhost:11434"

    def test_email_config(self, properties_file, monkeypatch):
        settings = SettingsConfigService(str(properties_file))
        monkeypatch.setenv("EMAIL_BACKEND", "log")
        monkeypatch.delenv("ADMIN_EMAIL", raising=False)

        config = settings.get_email_config()
        assert config["backend"] == "log"
        assert config["admin_email"] == "ops@example.com"
        assert config["base_url"] == "http://localhost:8000"


def test_explicit_config_file_wins(properties_file, monkeypatch):
    monkeypatch.setenv("JT_CONFIG_FILE", str(properties_file))
    assert get_config_file_path() == str(properties_file)


def test_test_mode_prefers_test_properties(tmp_path, monkeypatch):
    (tmp_path / "env.properties").write_text("[app]\n", encoding="utf-8")
    (tmp_path / "env-test.properties").write_text("[app]\n", encoding="utf-8")
    monkeypatch.delenv("JT_CONFIG_FILE", raising=False)
    monkeypatch.chdir(tmp_path)

    monkeypatch.setenv("JT_TEST_MODE", "1")
    assert get_config_file_path() == str(tmp_path / "env-test.properties")

    monkeypatch.setenv("JT_TEST_MODE", "0")
    assert get_config_file_path() == str(tmp_path / "env.properties")
