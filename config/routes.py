"""LLM route configuration."""
from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, Field

from .settings import Settings, settings as default_settings


class LlmRoute(BaseModel):
    """OpenAI-compatible chat completions endpoint."""

    name: str
    base_url: str
    endpoint: str
    model: str
    timeout_s: float = Field(ge=0.1)
    api_key_env: str | None = None
    extra_headers: Dict[str, str] = Field(default_factory=dict)


def route_from_settings(cfg: Optional[Settings] = None) -> LlmRoute:
    """Build the default text-generation route from settings."""

    cfg = cfg or default_settings
    return LlmRoute(
        name="text_generation",
        base_url=cfg.LLM_BASE_URL.rstrip("/"),
        endpoint=cfg.LLM_ENDPOINT,
        model=cfg.LLM_MODEL,
        timeout_s=cfg.LLM_TIMEOUT_S,
        api_key_env=cfg.LLM_API_KEY_ENV or None,
    )
