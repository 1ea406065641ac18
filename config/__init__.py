"""Configuration package for the interview practice core."""
from .registry import TEXT_GEN_KEY, bind_model, get_model, unbind_model
from .routes import LlmRoute, route_from_settings
from .settings import Settings, settings

__all__ = [
    "TEXT_GEN_KEY",
    "bind_model",
    "get_model",
    "unbind_model",
    "LlmRoute",
    "route_from_settings",
    "Settings",
    "settings",
]
