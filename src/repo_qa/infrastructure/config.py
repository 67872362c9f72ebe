"""Application configuration — loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration loaded from env vars (or ``.env`` file).

    Credentials are not part of the settings: the GitHub token and the
    LLM key arrive with each request.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="REPO_QA_",
        extra="ignore",
    )

    github_api_url: str = "https://api.github.com"
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    http_timeout_seconds: float = 30.0
    evidence_timeout_seconds: float = 20.0
    request_timeout_seconds: float = 120.0
    code_reference_max_lines: int = 100
    file_excerpt_chars: int = 2_000
    max_tree_entries: int = 500
    selection_strategy: Literal["heuristic", "planner"] = "heuristic"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton application settings (cached after first call)."""
    return Settings()
