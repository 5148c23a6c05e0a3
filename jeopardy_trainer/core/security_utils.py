"""
Secrets and text hygiene for Jeopardy Trainer

- the JWT signing secret (``JWT_SECRET`` or a generated, persisted one)
- opaque tokens for server-side sessions and remember-me restores
- cleaning text before it is placed in an LLM prompt
- masking provider keys, passwords and tokens before they reach a log
"""

import os
import re
import logging
import secrets
from pathlib import Path

logger = logging.getLogger(__name__)

SECURITY_DIR = Path.home() / ".jeopardy_trainer"
JWT_SECRET_FILE = SECURITY_DIR / "jwt.secret"

MAX_CLUE_TEXT_LENGTH = 2000
MAX_PROMPT_LENGTH = 50000

SECRET_PATTERNS = [
    (re.compile(r'api[_-]?key["\']?\s*[:=]\s*["\']?[A-Za-z0-9\-_]+', re.I), "api_key=***"),
    (re.compile(r'password["\']?\s*[:=]\s*["\']?[^\s"\',]+', re.I), "password=***"),
    (re.compile(r'"?token"?\s*[:=]\s*"?[A-Za-z0-9\-_\.]{16,}"?', re.I), "token=***"),
    (re.compile(r"Bearer\s+[A-Za-z0-9\-_\.]+", re.I), "Bearer ***"),
    (re.compile(r"eyJ[A-Za-z0-9\-_]+\.eyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+"), "jwt=***"),
    # OpenAI / OpenRouter (sk-, sk-or-) and Resend (re_) key shapes
    (re.compile(r"\bsk-[A-Za-z0-9\-_]{8,}"), "sk-***"),
    (re.compile(r"\bre_[A-Za-z0-9_]{8,}"), "re_***"),
]


def get_or_create_jwt_secret() -> str:
    """
    Return the JWT signing secret.

    ``JWT_SECRET`` wins. Otherwise a secret is generated on first use and
    stored in ``~/.jeopardy_trainer/jwt.secret`` (mode 0600) so tokens
    survive a restart.
    """
    env_secret = os.getenv("JWT_SECRET")
    if env_secret:
        return env_secret

    if JWT_SECRET_FILE.exists():
        return JWT_SECRET_FILE.read_text(encoding="utf-8").strip()

    SECURITY_DIR.mkdir(parents=True, exist_ok=True)
    secret = secrets.token_urlsafe(48)
    JWT_SECRET_FILE.write_text(secret, encoding="utf-8")
    try:
        os.chmod(JWT_SECRET_FILE, 0o600)
    except OSError as e:
        logger.debug(f"Cannot restrict permissions on {JWT_SECRET_FILE}: {e}")
    return secret


def generate_session_token() -> str:
    """Opaque token identifying one server-side auth session"""
    return secrets.token_urlsafe(32)


def clean_text(text: str, max_length: int = MAX_CLUE_TEXT_LENGTH) -> str:
    """Drop control characters (newlines and tabs survive) and truncate."""
    if not text:
        return ""
    cleaned = "".join(ch for ch in text if ch.isprintable() or ch in "\n\t\r")
    return cleaned[:max_length]


def clean_prompt(prompt: str) -> str:
    return clean_text(prompt, MAX_PROMPT_LENGTH)


def scrub_sensitive_data(message: str) -> str:
    """Mask secrets in a free-text message"""
    for pattern, replacement in SECRET_PATTERNS:
        message = pattern.sub(replacement, message)
    return message
