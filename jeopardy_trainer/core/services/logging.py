"""
Logging service for Jeopardy Trainer

Every service logs through structlog into the stdlib root logger, which fans
out to three handlers:

- ``<log dir>/jeopardy_trainer.log``: every event as one JSON line
- ``<log dir>/errors.log``: warnings and errors only
- console: human-readable, level from ``[logging] default_level``
  (DEBUG when ``JT_DEV_MODE`` is set)

Event names are dotted (``auth.login``, ``crud.archive``, ``ai.study_recommendation``,
``email.sent``) so the JSON log can be grepped per concern.
"""

import os
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

import structlog

from ..security_utils import scrub_sensitive_data
from .settings_config_service import get_settings_service

# Free-text fields that may carry prompts, clue text or provider error bodies
SCRUBBED_FIELDS = ("prompt", "error", "error_message", "response_body", "detail")

HANDLER_MARK = "_jeopardy_trainer"


def scrub_free_text(logger, method_name, event_dict):
    """structlog processor: mask secrets inside free-text fields"""
    for key in SCRUBBED_FIELDS:
        value = event_dict.get(key)
        if isinstance(value, str):
            event_dict[key] = scrub_sensitive_data(value)
    return event_dict


def _rotating_file(path: Path, level: int, max_bytes: int, backup_count: int):
    handler = RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


class LoggingService:
    """Structured logging service"""

    def __init__(self):
        defaults = get_settings_service().get_logging_defaults()
        self.log_dir = Path(defaults["dir"])
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.max_bytes = defaults["max_file_size_mb"] * 1024 * 1024
        self.backup_count = defaults["backup_count"]
        if os.getenv("JT_DEV_MODE"):
            self.console_level = logging.DEBUG
        else:
            self.console_level = logging.getLevelName(defaults["default_level"].upper())

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso", utc=True),
                scrub_free_text,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        self._install_handlers()

    def _install_handlers(self):
        root_logger = logging.getLogger()
        # A LoggingService created earlier in this process (tests) owns these
        for handler in list(root_logger.handlers):
            if getattr(handler, HANDLER_MARK, False):
                root_logger.removeHandler(handler)
                handler.close()

        console = logging.StreamHandler()
        console.setLevel(self.console_level)
        console.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-8s %(name)s %(message)s")
        )
        handlers = [
            _rotating_file(
                self.log_dir / "jeopardy_trainer.log",
                logging.DEBUG,
                self.max_bytes,
                self.backup_count,
            ),
            _rotating_file(
                self.log_dir / "errors.log",
                logging.WARNING,
                self.max_bytes,
                self.backup_count,
            ),
            console,
        ]

        root_logger.setLevel(logging.DEBUG)
        for handler in handlers:
            setattr(handler, HANDLER_MARK, True)
            root_logger.addHandler(handler)

    def get_logger(self, name: str) -> structlog.stdlib.BoundLogger:
        return structlog.get_logger(name)

    def log_event(
        self,
        logger_name: str,
        level: str,
        event_type: str,
        user_id: Optional[int] = None,
        **kwargs,
    ):
        """Emit ``event_type`` on ``logger_name`` at ``level`` (INFO, WARNING, ...)"""
        logger = self.get_logger(logger_name)
        emit = getattr(logger, level.lower(), logger.info)
        emit(event_type, user_id=user_id, **kwargs)

    def log_crud_operation(
        self,
        operation: str,
        entity: str,
        entity_id: Any,
        user_id: Optional[int] = None,
        **kwargs,
    ):
        """State changes to users, questions, games and mastery rows"""
        self.log_event(
            "crud",
            "INFO",
            f"crud.{operation}",
            user_id=user_id,
            entity=entity,
            entity_id=entity_id,
            **kwargs,
        )

    def log_auth_event(
        self,
        event: str,
        user_id: Optional[int] = None,
        username: Optional[str] = None,
        success: bool = True,
        **kwargs,
    ):
        self.log_event(
            "auth",
            "INFO" if success else "WARNING",
            f"auth.{event}",
            user_id=user_id,
            username=username,
            success=success,
            **kwargs,
        )

    def log_ai_operation(
        self,
        operation: str,
        provider: str,
        model: str,
        user_id: Optional[int] = None,
        success: bool = True,
        duration_ms: Optional[int] = None,
        **kwargs,
    ):
        """One LLM round trip; failures are logged at ERROR"""
        self.log_event(
            "ai",
            "INFO" if success else "ERROR",
            f"ai.{operation}",
            user_id=user_id,
            provider=provider,
            model=model,
            success=success,
            duration_ms=duration_ms,
            **kwargs,
        )

    def log_error(
        self,
        error_type: str,
        error_message: str,
        user_id: Optional[int] = None,
        **kwargs,
    ):
        """Failures that end a request with a 500"""
        self.log_event(
            "error",
            "ERROR",
            f"error.{error_type}",
            user_id=user_id,
            error_message=error_message,
            **kwargs,
        )

    def log_email_event(self, outcome: str, kind: str, **kwargs):
        """``outcome`` is sent, logged, skipped or failed"""
        self.log_event(
            "email",
            "WARNING" if outcome == "failed" else "INFO",
            f"email.{outcome}",
            kind=kind,
            **kwargs,
        )


_logging_service: Optional[LoggingService] = None


def get_logging_service() -> LoggingService:
    """Get the global logging service instance"""
    global _logging_service
    if _logging_service is None:
        _logging_service = LoggingService()
    return _logging_service


def reset_logging_service() -> None:
    """Drop the global logging service so the next call re-reads settings."""
    global _logging_service
    _logging_service = None


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return get_logging_service().get_logger(name)
