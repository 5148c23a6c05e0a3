"""
Settings Configuration Service for Jeopardy Trainer

This module provides centralized configuration management using properties files.
It handles loading, parsing, and providing access to application settings.

Configuration files:
- env.properties: Production configuration (default)
- env-test.properties: Test configuration (used when JT_TEST_MODE=1)

Secrets never live in the properties file; they are read from the
environment (JWT_SECRET, OPENAI_API_KEY, OPENROUTER_API_KEY, RESEND_API_KEY).
"""

import os
import configparser
import logging
from pathlib import Path
from typing import Dict, Any, Optional


def get_config_file_path() -> str:
    """
    Determine the appropriate configuration file based on environment.

    Priority:
    1. JT_CONFIG_FILE environment variable (explicit override)
    2. env-test.properties (when JT_TEST_MODE=1)
    3. env.properties (production default)
    """
    explicit_config = os.environ.get("JT_CONFIG_FILE")
    if explicit_config and os.path.exists(explicit_config):
        return explicit_config

    search_paths = [
        Path.cwd(),
        Path(__file__).parent.parent.parent.parent,  # project root
    ]

    for base_path in search_paths:
        if os.environ.get("JT_TEST_MODE") == "1":
            test_config = base_path / "env-test.properties"
            if test_config.exists():
                return str(test_config)

        prod_config = base_path / "env.properties"
        if prod_config.exists():
            return str(prod_config)

    return "env.properties"


class SettingsConfigService:
    """Service for managing application settings from properties files."""

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize the settings configuration service.

        Args:
            config_file: Optional path to config file. If None, auto-detects based on environment.
        """
        self.config_file = config_file or get_config_file_path()
        self.config = configparser.ConfigParser()
        self.logger = logging.getLogger(__name__)
        self._create_default_config()
        self._load_config()

    def _load_config(self):
        """Load configuration from properties file on top of the defaults."""
        if not os.path.exists(self.config_file):
            self.logger.warning(
                f"Config file {self.config_file} not found, using defaults"
            )
            return

        try:
            self.config.read(self.config_file, encoding="utf-8")
            self.logger.info(f"Configuration loaded from {self.config_file}")
        except configparser.Error as e:
            self.logger.error(f"Failed to load configuration: {e}")

    def _create_default_config(self):
        """Populate built-in defaults; the properties file overrides them."""
        self.config.read_dict(
            {
                "app": {
                    "name": "Jeopardy Trainer",
                    "version": "1.0.0",
                    "base_url": "http://localhost:8000",
                },
                "database": {
                    "url": "sqlite:///jeopardy_trainer.db",
                    "echo": "false",
                },
                "auth": {
                    "token_expiry_minutes": "30",
                    "session_days": "30",
                    "session_refresh_threshold_days": "29",
                    "cookie_name": "jt_access_token",
                    "cookie_secure": "false",
                },
                "quiz": {
                    "recency_lambda": "3.5",
                    "count_cache_ttl_seconds": "300",
                    "mastery_threshold": "3",
                },
                "coryat": {
                    "category_pool_size": "100",
                },
                "ai": {
                    "default_provider": "openai",
                    "default_model": "gpt-4o",
                    "default_temperature": "0.7",
                    "default_max_tokens": "2000",
                    "timeout_seconds": "120",
                    "openai.endpoint": "https://api.openai.com/v1/chat/completions",
                    "openrouter.url": "https://openrouter.ai/api/v1/chat/completions",
                    "openrouter.model": "openai/gpt-4o",
                    "ollama.url": "http://localhost:11434",
                    "ollama.model": "llama3",
                },
                "email": {
                    "backend": "resend",
                    "resend.url": "https://api.resend.com/emails",
                    "from": "Jeopardy Trainer <onboarding@resend.dev>",
                    "admin_email": "",
                    "timeout_seconds": "10",
                },
                "logging": {
                    "default_level": "INFO",
                    "max_file_size_mb": "10",
                    "backup_count": "5",
                    "dir": "logs",
                },
            }
        )

    def get(self, section: str, key: str, fallback: Optional[str] = None) -> str:
        """Get a configuration value."""
        try:
            return self.config.get(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError):
            if fallback is not None:
                return fallback
            self.logger.warning(f"Configuration not found: {section}.{key}")
            return ""

    def getint(self, section: str, key: str, fallback: Optional[int] = None) -> int:
        """Get an integer configuration value."""
        try:
            return self.config.getint(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            if fallback is not None:
                return fallback
            self.logger.warning(f"Integer configuration not found: {section}.{key}")
            return 0

    def getfloat(
        self, section: str, key: str, fallback: Optional[float] = None
    ) -> float:
        """Get a float configuration value."""
        try:
            return self.config.getfloat(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            if fallback is not None:
                return fallback
            self.logger.warning(f"Float configuration not found: {section}.{key}")
            return 0.0

    def getboolean(
        self, section: str, key: str, fallback: Optional[bool] = None
    ) -> bool:
        """Get a boolean configuration value."""
        try:
            return self.config.getboolean(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            if fallback is not None:
                return fallback
            self.logger.warning(f"Boolean configuration not found: {section}.{key}")
            return False

    def get_database_url(self) -> str:
        """Database URL, JT_DATABASE_URL wins over the properties file."""
        return os.environ.get("JT_DATABASE_URL") or self.get("database", "url")

    def get_ai_config_defaults(self) -> Dict[str, Any]:
        """Get AI configuration defaults with environment variable override."""
        ai_provider = os.environ.get("AI_PROVIDER", self.get("ai", "default_provider"))

        config = {
            "default_provider": ai_provider,
            "default_model": self.get("ai", "default_model"),
            "default_temperature": self.getfloat("ai", "default_temperature", 0.7),
            "default_max_tokens": self.getint("ai", "default_max_tokens", 2000),
            "timeout_seconds": self.getfloat("ai", "timeout_seconds", 120.0),
            "openai_endpoint": self.get("ai", "openai.endpoint"),
            "openrouter_url": self.get("ai", "openrouter.url"),
            "ollama_url": self.get("ai", "ollama.url"),
            "api_key": None,
        }

        if ai_provider == "openai":
            config["api_key"] = os.environ.get("OPENAI_API_KEY")
            config["endpoint"] = config["openai_endpoint"]
        elif ai_provider == "openrouter":
            config["api_key"] = os.environ.get("OPENROUTER_API_KEY")
            config["default_model"] = self.get("ai", "openrouter.model")
            config["endpoint"] = config["openrouter_url"]
        elif ai_provider == "ollama":
            ollama_model = self.get("ai", "ollama.model", "")
            config["default_model"] = ollama_model or "llama3"
            config["endpoint"] = config["ollama_url"]
        else:
            config["endpoint"] = None

        return config

    def get_email_config(self) -> Dict[str, Any]:
        """Get outbound email configuration with environment variable override."""
        return {
            "backend": os.environ.get("EMAIL_BACKEND", self.get("email", "backend")),
            "api_url": self.get("email", "resend.url"),
            "api_key": os.environ.get("RESEND_API_KEY"),
            "from_address": os.environ.get("EMAIL_FROM") or self.get("email", "from"),
            "admin_email": os.environ.get("ADMIN_EMAIL")
            or self.get("email", "admin_email", ""),
            "timeout_seconds": self.getfloat("email", "timeout_seconds", 10.0),
            "base_url": self.get("app", "base_url"),
        }

    def get_logging_defaults(self) -> Dict[str, Any]:
        """Get logging configuration defaults."""
        return {
            "default_level": self.get("logging", "default_level", "INFO"),
            "max_file_size_mb": self.getint("logging", "max_file_size_mb", 10),
            "backup_count": self.getint("logging", "backup_count", 5),
            "dir": os.environ.get("JT_LOG_DIR") or self.get("logging", "dir", "logs"),
        }


# Global instance
_settings_service = None


def get_settings_service(config_file: Optional[str] = None) -> SettingsConfigService:
    """
    Get the global settings service instance.

    Args:
        config_file: Optional path to config file. If None, auto-detects:
                    - env-test.properties when JT_TEST_MODE=1
                    - env.properties for production

    Returns:
        SettingsConfigService instance
    """
    global _settings_service
    if _settings_service is None:
        _settings_service = SettingsConfigService(config_file)
    return _settings_service


def reset_settings_service():
    """Reset the global settings service instance. Useful for testing."""
    global _settings_service
    _settings_service = None
