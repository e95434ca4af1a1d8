# FILE: config/settings.py
"""Runtime settings for the refinement core.

Values come from the environment (optionally a .env file). Defaults match a
local development setup: Redis on localhost, 24h session TTL, Claude Haiku
as the classification oracle.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_SESSION_TTL = 86400
DEFAULT_HISTORY_CAPACITY = 5
DEFAULT_CLARIFY_THRESHOLD = 0.5


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


@dataclass(frozen=True)
class RefinementSettings:
    redis_url: str = "redis://localhost:6379"
    redis_password: Optional[str] = None
    redis_connect_timeout: float = 10.0
    session_ttl_seconds: int = DEFAULT_SESSION_TTL
    session_key_prefix: str = "session:"
    degraded_mode: str = "memory"  # "memory" | "reject"

    classifier_provider: str = "anthropic"
    classifier_model: str = "claude-3-5-haiku-20241022"
    classifier_timeout_seconds: float = 15.0

    clarify_threshold: float = DEFAULT_CLARIFY_THRESHOLD
    history_capacity: int = DEFAULT_HISTORY_CAPACITY
    commit_retries: int = 2

    @classmethod
    def from_env(cls) -> "RefinementSettings":
        degraded = os.getenv("SESSION_DEGRADED_MODE", "memory").strip().lower()
        if degraded not in ("memory", "reject"):
            degraded = "memory"
        return cls(
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379").strip(),
            redis_password=os.getenv("REDIS_PASSWORD") or None,
            redis_connect_timeout=_float_env("REDIS_CONNECT_TIMEOUT", 10.0),
            session_ttl_seconds=_int_env("REDIS_SESSION_TTL", DEFAULT_SESSION_TTL),
            session_key_prefix=os.getenv("SESSION_KEY_PREFIX", "session:"),
            degraded_mode=degraded,
            classifier_provider=os.getenv("REFINE_CLASSIFIER_PROVIDER", "anthropic").strip(),
            classifier_model=os.getenv("REFINE_CLASSIFIER_MODEL", "claude-3-5-haiku-20241022").strip(),
            classifier_timeout_seconds=_float_env("REFINE_CLASSIFIER_TIMEOUT", 15.0),
            clarify_threshold=_float_env("REFINE_CLARIFY_THRESHOLD", DEFAULT_CLARIFY_THRESHOLD),
            history_capacity=max(1, _int_env("REFINE_HISTORY_CAPACITY", DEFAULT_HISTORY_CAPACITY)),
            commit_retries=max(0, _int_env("REFINE_COMMIT_RETRIES", 2)),
        )


_settings: Optional[RefinementSettings] = None


def get_settings() -> RefinementSettings:
    global _settings
    if _settings is None:
        _settings = RefinementSettings.from_env()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (tests flip env vars)."""
    global _settings
    _settings = None
