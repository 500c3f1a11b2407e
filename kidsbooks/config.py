"""
Runtime configuration for the kids books API.

All settings come from environment variables with sensible defaults so
the service runs out of the box against the in‑memory store. Accessors
are plain functions (not module constants) so tests can ``monkeypatch``
the environment and see the new values immediately.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

APP_NAME = "kidsbooks"
APP_VERSION = "1.0.0"
APP_DESCRIPTION = (
    "Children's book discovery API: browse, search, favourite and follow "
    "books, authors and series, with new-release notifications."
)

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_DEMO_USERNAME = "demo"
DEFAULT_DEMO_PASSWORD = "password"
MATCH_POLICIES = ("all", "any")
_TRUE = {"1", "true", "yes", "on"}


def _raw_env(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.getenv(name)
    return val if val is not None else default


def env_bool(name: str, default: bool = False) -> bool:
    raw = _raw_env(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE


def env_int(name: str, default: int) -> int:
    raw = _raw_env(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def log_level_name() -> str:
    return (_raw_env("KIDSBOOKS_LOG_LEVEL", DEFAULT_LOG_LEVEL) or DEFAULT_LOG_LEVEL).upper()


def demo_username() -> str:
    return _raw_env("KIDSBOOKS_DEMO_USERNAME", DEFAULT_DEMO_USERNAME) or DEFAULT_DEMO_USERNAME


def demo_password() -> str:
    return _raw_env("KIDSBOOKS_DEMO_PASSWORD", DEFAULT_DEMO_PASSWORD) or DEFAULT_DEMO_PASSWORD


def seed_sample_books() -> bool:
    return env_bool("KIDSBOOKS_SEED_SAMPLE_BOOKS", True)


def scheduler_enabled() -> bool:
    return env_bool("KIDSBOOKS_SCHEDULER_ENABLED", True)


def startup_delay_seconds() -> int:
    return max(0, env_int("KIDSBOOKS_STARTUP_DELAY_SECONDS", 10))


def daily_run_hour() -> int:
    hour = env_int("KIDSBOOKS_DAILY_RUN_HOUR", 0)
    return hour if 0 <= hour <= 23 else 0


def match_policy() -> str:
    """Matching policy for the new-release notifier.

    ``all`` requires a book to satisfy both the preferred age ranges and
    the preferred categories; ``any`` accepts either one. Unknown values
    fall back to ``all``.
    """
    raw = (_raw_env("KIDSBOOKS_MATCH_POLICY", "all") or "all").strip().lower()
    return raw if raw in MATCH_POLICIES else "all"


def ingest_new_releases() -> bool:
    return env_bool("KIDSBOOKS_INGEST_NEW_RELEASES", False)


def search_min_local_results() -> int:
    return max(0, env_int("KIDSBOOKS_SEARCH_MIN_LOCAL_RESULTS", 5))


def google_books_api_key() -> str:
    return _raw_env("GOOGLE_BOOKS_API_KEY", "") or ""


def external_timeout_seconds() -> int:
    return max(1, env_int("KIDSBOOKS_EXTERNAL_TIMEOUT_SECONDS", 10))


@lru_cache(maxsize=1)
def metadata() -> dict:
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "description": APP_DESCRIPTION,
    }


def summarize_runtime_config() -> dict:
    return {
        "log_level": log_level_name(),
        "demo_username": demo_username(),
        "seed_sample_books": seed_sample_books(),
        "scheduler_enabled": scheduler_enabled(),
        "startup_delay_seconds": startup_delay_seconds(),
        "daily_run_hour": daily_run_hour(),
        "match_policy": match_policy(),
        "ingest_new_releases": ingest_new_releases(),
        "search_min_local_results": search_min_local_results(),
        "google_books_api_key_set": bool(google_books_api_key()),
    }


__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "APP_DESCRIPTION",
    "MATCH_POLICIES",
    "env_bool",
    "env_int",
    "log_level_name",
    "demo_username",
    "demo_password",
    "seed_sample_books",
    "scheduler_enabled",
    "startup_delay_seconds",
    "daily_run_hour",
    "match_policy",
    "ingest_new_releases",
    "search_min_local_results",
    "google_books_api_key",
    "external_timeout_seconds",
    "metadata",
    "summarize_runtime_config",
]
