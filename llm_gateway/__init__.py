from __future__ import annotations  # Re-export llm_gateway public API

from .llm_gateway import HttpClient, HttpResponse, LlmGatewayError, generate_text
from .parsing import extract_json_object, first_balanced_object, parse_or_fallback

__all__ = [
    "HttpClient",
    "HttpResponse",
    "LlmGatewayError",
    "extract_json_object",
    "first_balanced_object",
    "generate_text",
    "parse_or_fallback",
]
