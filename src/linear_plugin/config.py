"""
Configuration helpers and defaults.

Settings come from the agent runtime's settings lookup, falling back to the
process environment so local runs and tests only need env vars.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass

SettingsLookup = Callable[[str], "str | None"]

DEFAULT_API_URL = "https://api.linear.app/graphql"
DEFAULT_LLM_MODEL = "anthropic.claude-3-haiku-20240307-v1:0"


def _env(name: str, default: str | None = None) -> str | None:
    v = os.getenv(name)
    return v if v is not None else default


@dataclass(frozen=True)
class Settings:
    linear_api_key: str | None
    linear_workspace_id: str | None
    default_team_key: str | None
    linear_api_url: str
    linear_timeout_seconds: int
    llm_model: str
    llm_max_retries: int
    webhook_shared_secret: str | None


def load_settings(get: SettingsLookup | None = None) -> Settings:
    """Load settings from the runtime lookup (if any), then environment."""

    def _get(name: str, default: str | None = None) -> str | None:
        v = get(name) if get else None
        if v not in (None, ""):
            return str(v)
        return _env(name, default)

    return Settings(
        linear_api_key=_get("LINEAR_API_KEY") or None,
        linear_workspace_id=_get("LINEAR_WORKSPACE_ID") or None,
        default_team_key=(_get("LINEAR_DEFAULT_TEAM_KEY") or "").strip() or None,
        linear_api_url=_get("LINEAR_API_URL", DEFAULT_API_URL) or DEFAULT_API_URL,
        linear_timeout_seconds=int(_get("LINEAR_TIMEOUT_SECONDS", "8") or 8),
        llm_model=_get("LLM_MODEL", DEFAULT_LLM_MODEL) or DEFAULT_LLM_MODEL,
        llm_max_retries=int(_get("LLM_MAX_RETRIES", "2") or 2),
        webhook_shared_secret=_get("WEBHOOK_SHARED_SECRET") or None,
    )
