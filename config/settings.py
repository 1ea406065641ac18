"""Application settings and configuration management."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/interview_core.db")
    STORE_TIMEOUT_S: float = Field(default=5.0, gt=0)

    CACHE_DEFAULT_TTL_S: float = 300.0
    CACHE_SWEEP_INTERVAL_S: float = 600.0

    POOL_DEFAULT_TOTAL: int = 100
    POOL_MIN_TOTAL: int = 50
    POOL_MAX_TOTAL: int = 200
    POOL_RESIZE_STEP: int = 10
    POOL_METRICS_TTL_S: float = 30.0

    ACTIVE_SESSIONS_TTL_S: float = 120.0
    ACTIVE_SESSIONS_LIMIT: int = 50
    HISTORY_TTL_S: float = 300.0
    HISTORY_PAGE_SIZE: int = 20

    ADAPTIVE_WINDOW: int = 3
    TOP_AREAS: int = 3
    MAX_RECOMMENDATIONS: int = 5

    PERF_LOG_RETENTION_DAYS: int = 30

    LLM_BASE_URL: str = "https://api.openai.com"
    LLM_ENDPOINT: str = "/v1/chat/completions"
    LLM_MODEL: str = "gpt-4-turbo"
    LLM_API_KEY_ENV: str = "OPENAI_API_KEY"
    LLM_TIMEOUT_S: float = 30.0

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True, extra="ignore")


settings = Settings()
