from __future__ import annotations  # Extraction of JSON payloads embedded in model output

import json
import logging
from typing import Any, Callable, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def first_balanced_object(text: str) -> Optional[str]:  # Slice of the first balanced {...} block, or None
    start = text.find("{")
    if start < 0:
        return None
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:  # Decode the first balanced block as a JSON object
    block = first_balanced_object(text or "")
    if block is None:
        return None
    try:
        value = json.loads(block)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def parse_or_fallback(
    text: str,
    schema: Type[T],
    fallback: Callable[[str], T],
    *,
    context: str = "",
) -> tuple[T, bool]:  # Validated payload plus a flag telling whether the fallback was used
    payload = extract_json_object(text)
    if payload is None:
        logger.warning("No JSON object in model output context=%s; using fallback", context)
        return fallback(text), True
    try:
        return schema.model_validate(payload), False
    except ValidationError as exc:
        logger.warning("Model output failed validation context=%s: %s; using fallback", context, exc)
        return fallback(text), True


__all__ = ["extract_json_object", "first_balanced_object", "parse_or_fallback"]
