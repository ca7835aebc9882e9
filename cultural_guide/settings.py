# cultural_guide/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

OPENAI_KEY_PLACEHOLDER = "your_openai_api_key_here"
QLOO_KEY_PLACEHOLDER = "your_qloo_api_key_here"

DEFAULT_QLOO_API_URL = "https://hackathon.api.qloo.com"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_SESSION_TTL_SECONDS = 30 * 60
DEFAULT_MAX_SESSIONS = 200


def is_configured(value: str | None, placeholder: str) -> bool:
    """A credential counts as configured when it is set and not the .env template value."""
    if not value or not value.strip():
        return False
    return value.strip() != placeholder


@dataclass(frozen=True)
class Settings:
    openai_api_key: str | None = None
    qloo_api_key: str | None = None
    qloo_api_url: str = DEFAULT_QLOO_API_URL
    model: str = DEFAULT_MODEL
    allowed_origins: tuple = ("*",)
    session_ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS
    max_sessions: int = DEFAULT_MAX_SESSIONS

    @property
    def openai_configured(self) -> bool:
        return is_configured(self.openai_api_key, OPENAI_KEY_PLACEHOLDER)

    @property
    def qloo_configured(self) -> bool:
        return is_configured(self.qloo_api_key, QLOO_KEY_PLACEHOLDER)


def _parse_origins(raw: str | None) -> List[str]:
    origins = [origin.strip() for origin in (raw or "*").split(",") if origin.strip()]
    return origins or ["*"]


def _env_number(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def get_settings() -> Settings:
    """Read settings from the environment on every call so tests can patch it."""
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        qloo_api_key=os.getenv("QLOO_API_KEY"),
        qloo_api_url=(os.getenv("QLOO_API_URL") or DEFAULT_QLOO_API_URL).rstrip("/"),
        model=os.getenv("CULTURAL_GUIDE_MODEL") or DEFAULT_MODEL,
        allowed_origins=tuple(_parse_origins(os.getenv("CULTURAL_GUIDE_ALLOWED_ORIGINS"))),
        session_ttl_seconds=_env_number("CULTURAL_GUIDE_SESSION_TTL", DEFAULT_SESSION_TTL_SECONDS),
        max_sessions=int(_env_number("CULTURAL_GUIDE_MAX_SESSIONS", DEFAULT_MAX_SESSIONS)),
    )
