from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\n?(.*?)\n?[ \t]*```", re.DOTALL)
_DECODER = json.JSONDecoder()


class MalformedProviderResponse(ValueError):
    """Provider text could not be turned into the expected structure."""

    def __init__(self, message: str, *, raw: str = ""):
        super().__init__(message)
        self.raw = raw


def strip_wrapping(raw: str) -> str:
    """Drop a leading BOM and code fences."""
    text = (raw or "").strip().lstrip("\ufeff")
    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()
    return text


def _first_object(text: str) -> dict[str, Any] | None:
    """First ``{`` that decodes to a JSON object; anything after it is ignored."""
    idx = text.find("{")
    while idx != -1:
        try:
            parsed, _ = _DECODER.raw_decode(text, idx)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed
        idx = text.find("{", idx + 1)
    return None


def parse_object(raw: str) -> dict[str, Any]:
    text = strip_wrapping(raw)
    if not text:
        raise MalformedProviderResponse("Provider returned an empty response.", raw=raw or "")
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        parsed = _first_object(text)
        if parsed is None:
            raise MalformedProviderResponse(f"Provider response is not valid JSON: {exc.msg}", raw=raw) from exc
    if not isinstance(parsed, dict):
        raise MalformedProviderResponse("Provider response is not a JSON object.", raw=raw)
    return parsed


def as_number(value: Any) -> float | None:
    """Finite float for numbers and numeric strings, otherwise None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.strip().rstrip("%").strip()
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def require_number(payload: Mapping[str, Any], key: str, *, context: str) -> float:
    number = as_number(payload.get(key))
    if number is None:
        raise MalformedProviderResponse(f"{context}: '{key}' must be a number.")
    return number


def optional_number(value: Any, default: float = 0.0) -> float:
    number = as_number(value)
    return default if number is None else number


def as_text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def as_str_list(value: Any) -> list[str]:
    """Coerce to a list of non-empty strings; absent or null becomes []."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, (list, tuple)):
        return []
    items: list[str] = []
    for item in value:
        text = as_text(item)
        if text.strip():
            items.append(text)
    return items


def as_mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def as_mapping_list(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, dict)]


def first_present(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


def check_enum(value: Any, allowed: Iterable[str], *, field: str, context: str) -> str:
    """Return ``value`` as text; values outside the set are kept and logged."""
    text = as_text(value)
    allowed_set = set(allowed)
    if text not in allowed_set:
        logger.warning("provider_enum_out_of_set context=%s field=%s value=%r", context, field, text[:60])
    return text
