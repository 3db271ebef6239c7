"""Shared utility functions for agents."""

import json
import logging
import math
import re
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def parse_json_response(response: str) -> Dict[str, Any]:
    """Parse the JSON object out of a model response.

    Markdown fences are stripped and the text between the first ``{`` and
    the last ``}`` is decoded. A top-level array yields its first element.

    Args:
        response: Model response text

    Returns:
        Parsed JSON object

    Raises:
        ValueError: If no JSON object can be recovered
    """
    text = _FENCE_RE.sub("", response or "").strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("No JSON object found in model response")
        try:
            parsed = json.loads(text[start:end + 1])
        except json.JSONDecodeError as e:
            raise ValueError(f"Model response is not valid JSON: {e}") from e

    if isinstance(parsed, list):
        if not parsed:
            raise ValueError("Model returned an empty array")
        parsed = parsed[0]

    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")

    return parsed


def sanitize_integer(value: Any) -> int:
    """Floor a number or numeric string; anything else becomes 0.

    >>> sanitize_integer(2.7)
    2
    >>> sanitize_integer("3.5")
    3
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0
    else:
        return 0

    if math.isnan(number) or math.isinf(number):
        return 0
    return math.floor(number)


def sanitize_string_list(value: Any) -> List[str]:
    """Coerce a model field into a list of strings.

    Lists are kept (non-string items stringified, blanks dropped), a single
    string becomes a one-element list and anything else an empty list.
    """
    if isinstance(value, list):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    if isinstance(value, str):
        return [value] if value.strip() else []
    return []


def clamp_score(value: Any, low: float = 0, high: float = 100) -> float:
    """Clamp a numeric score into ``[low, high]``; non-numbers become ``low``."""
    if isinstance(value, bool):
        return low
    try:
        number = float(value)
    except (TypeError, ValueError):
        return low
    if math.isnan(number):
        return low
    return max(low, min(high, number))


def optional_text(value: Any) -> str:
    """Stringify a model field, mapping null to an empty string."""
    if value is None:
        return ""
    return str(value).strip()
