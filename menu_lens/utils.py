"""Utility functions."""

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```(?:json|JSON)?")


def strip_code_fences(text: str) -> str:
    """
    Remove ```json / ``` markers the model may still emit.
    Content between the fences is kept.
    """
    return _FENCE_RE.sub("", text).strip()


def extract_json_array(text: str) -> list[Any]:
    """
    Clean Markdown fences and parse a JSON array.
    Raises ValueError on empty output, invalid JSON or a non-array value.
    """
    if not text or not text.strip():
        raise ValueError("Empty model output")

    cleaned = strip_code_fences(text)

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ValueError(f"Model output is not valid JSON: {e}") from e

    if not isinstance(parsed, list):
        raise ValueError(f"Expected a JSON array, got {type(parsed).__name__}")

    return parsed
