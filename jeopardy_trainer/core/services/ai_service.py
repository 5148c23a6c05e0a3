"""
AI Service for Jeopardy Trainer

Thin client over OpenAI-compatible chat completion endpoints (OpenAI,
OpenRouter) and Ollama. Every call asks the provider for a JSON object; the
caller owns parsing and validation of the returned text.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Protocol

import httpx

from ..exceptions import AIServiceError, ConfigurationError
from ..security_utils import clean_prompt, scrub_sensitive_data
from .settings_config_service import get_settings_service


class AIProvider(Enum):
    """Supported AI providers."""

    OPENAI = "openai"
    OPENROUTER = "openrouter"
    OLLAMA = "ollama"


@dataclass
class RuntimeAIConfig:
    """Runtime AI configuration."""

    provider: str
    model: str
    api_key: Optional[str] = None
    endpoint: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 2000
    timeout_seconds: float = 120.0


@dataclass
class AIResponse:
    """AI response data."""

    content: str
    tokens_used: int
    model: str
    provider: AIProvider
    response_time: float
    timestamp: datetime


class LoggerLike(Protocol):
    def debug(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...

    def info(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...

    def error(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...


def _tokens_used(usage: Optional[Dict[str, Any]]) -> int:
    # OpenRouter reports either total_tokens or input/output pairs
    if not usage:
        return 0
    if "total_tokens" in usage:
        return usage["total_tokens"]
    if "input_tokens" in usage and "output_tokens" in usage:
        return usage["input_tokens"] + usage["output_tokens"]
    return 0


class AIService:
    """JSON-mode LLM calls for study recommendations"""

    def __init__(
        self,
        config: RuntimeAIConfig,
        logger: LoggerLike,
        client: Optional[httpx.Client] = None,
    ):
        self.config = config
        self.logger = logger
        self.model = str(config.model or "unknown")
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(config.timeout_seconds, connect=30.0)
        )

    @property
    def provider(self) -> AIProvider:
        try:
            return AIProvider(self.config.provider)
        except ValueError:
            raise ConfigurationError(
                f"Unsupported AI provider: {self.config.provider}"
            ) from None

    def ensure_configured(self) -> None:
        """Raise ConfigurationError when the provider cannot be called at all"""
        provider = self.provider
        if provider in (AIProvider.OPENAI, AIProvider.OPENROUTER) and not self.config.api_key:
            raise ConfigurationError(f"{provider.value} API key not configured")
        if not self.config.endpoint:
            raise ConfigurationError(f"{provider.value} endpoint not configured")

    def generate_json(self, prompt: str, system_prompt: Optional[str] = None) -> AIResponse:
        """Ask the configured model for a JSON object"""
        self.ensure_configured()
        return self._call_ai(
            clean_prompt(prompt),
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
            system_prompt=system_prompt,
        )

    def _call_ai(
        self,
        prompt: str,
        max_tokens: int,
        temperature: float,
        system_prompt: Optional[str] = None,
    ) -> AIResponse:
        """
        Make AI API call based on configured provider.

        Raises:
            AIServiceError: If the HTTP call fails or the reply is malformed
        """
        start_time = time.time()
        provider = self.provider

        try:
            if provider == AIProvider.OLLAMA:
                response = self._call_ollama(prompt, max_tokens, temperature, system_prompt)
            else:
                response = self._call_chat_completions(
                    prompt, max_tokens, temperature, system_prompt
                )
        except httpx.TimeoutException:
            self.logger.error("AI request timed out", provider=provider.value)
            raise AIServiceError(
                "Request timed out. The AI service is taking too long to respond."
            )
        except httpx.HTTPStatusError as e:
            self.logger.error(
                "AI request rejected",
                provider=provider.value,
                status_code=e.response.status_code,
            )
            raise AIServiceError(f"HTTP error ({e.response.status_code}) from {provider.value}")
        except httpx.HTTPError as e:
            self.logger.error(
                "AI request failed",
                provider=provider.value,
                error=scrub_sensitive_data(str(e)),
            )
            raise AIServiceError(f"AI service unavailable: {e}")
        except (KeyError, IndexError, TypeError, ValueError) as e:
            self.logger.error(
                "AI reply malformed",
                provider=provider.value,
                error=scrub_sensitive_data(str(e)),
            )
            raise AIServiceError(f"Unexpected reply from {provider.value}: {e}")

        response_time = time.time() - start_time
        ai_response = AIResponse(
            content=response["content"],
            tokens_used=response.get("tokens_used", 0),
            model=str(response.get("model") or self.model),
            provider=provider,
            response_time=response_time,
            timestamp=datetime.now(timezone.utc),
        )
        self.logger.info(
            f"AI call completed in {response_time:.2f}s, {ai_response.tokens_used} tokens used"
        )
        return ai_response

    def _call_chat_completions(
        self,
        prompt: str,
        max_tokens: int,
        temperature: float,
        system_prompt: Optional[str],
    ) -> Dict[str, Any]:
        """Call an OpenAI-compatible chat completions endpoint (OpenAI, OpenRouter)."""
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        if self.provider == AIProvider.OPENROUTER:
            headers["X-Title"] = "Jeopardy Trainer"

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        data = {
            "model": self.config.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "response_format": {"type": "json_object"},
        }

        self.logger.debug(
            "Calling chat completions",
            endpoint=self.config.endpoint,
            model=self.config.model,
            messages=len(messages),
        )
        response = self._client.post(self.config.endpoint, json=data, headers=headers)
        response.raise_for_status()

        result = response.json()
        return {
            "content": result["choices"][0]["message"]["content"],
            "tokens_used": _tokens_used(result.get("usage")),
            "model": result.get("model"),
        }

    def _call_ollama(
        self,
        prompt: str,
        max_tokens: int,
        temperature: float,
        system_prompt: Optional[str],
    ) -> Dict[str, Any]:
        """Call Ollama API."""
        data = {
            "model": self.config.model,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        if system_prompt:
            data["system"] = system_prompt

        base_url = self.config.endpoint.rstrip("/")
        response = self._client.post(f"{base_url}/api/generate", json=data)
        response.raise_for_status()

        result = response.json()
        return {
            "content": result["response"],
            "tokens_used": result.get("prompt_eval_count", 0) + result.get("eval_count", 0),
            "model": self.config.model,
        }

    def close(self):
        """Close HTTP client."""
        if self._client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def config_from_settings() -> RuntimeAIConfig:
    """Build the runtime config from the [ai] section and environment"""
    defaults = get_settings_service().get_ai_config_defaults()
    return RuntimeAIConfig(
        provider=defaults["default_provider"],
        model=defaults["default_model"],
        api_key=defaults["api_key"],
        endpoint=defaults.get("endpoint"),
        temperature=defaults["default_temperature"],
        max_tokens=defaults["default_max_tokens"],
        timeout_seconds=defaults["timeout_seconds"],
    )


# Global AI service instance
_ai_service: Optional[AIService] = None


def init_ai_service(
    config: Optional[RuntimeAIConfig] = None, client: Optional[httpx.Client] = None
) -> AIService:
    """Initialize the global AI service instance."""
    global _ai_service
    from .logging import get_logger

    if _ai_service is not None:
        _ai_service.close()
    _ai_service = AIService(config or config_from_settings(), get_logger("ai_service"), client)
    return _ai_service


def get_ai_service() -> AIService:
    """Get the global AI service instance."""
    global _ai_service
    if _ai_service is None:
        from .logging import get_logger

        config = config_from_settings()
        logger = get_logger("ai_service")
        logger.info(
            f"Initializing AI service: provider={config.provider}, model={config.model}"
        )
        _ai_service = AIService(config, logger)
    return _ai_service


def reset_ai_service() -> None:
    """Reset the global AI service instance to force re-initialization with fresh config."""
    global _ai_service
    if _ai_service is not None:
        _ai_service.close()
    _ai_service = None
