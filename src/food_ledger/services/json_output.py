"""Tolerant parsing of JSON objects embedded in model output."""

import json
import re

from food_ledger.errors import ParseError

_FENCE_START = re.compile(r"^```(?:json)?\s*", flags=re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```$")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


def parse_json_object(text: str | None) -> dict[str, object]:
    """Parse the JSON object in ``text``.

    Tries the whole (fence-stripped) text first, then the outermost
    ``{...}`` span. Raises ``ParseError`` when neither yields an object.
    """
    if not text or not text.strip():
        raise ParseError("Model returned an empty response")
    cleaned = _strip_fences(text)

    for candidate in (cleaned, _outermost_object(cleaned)):
        if candidate is None:
            continue
        for attempt in (candidate, _sanitize(candidate)):
            try:
                parsed = json.loads(attempt)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, dict):
                return parsed
    raise ParseError("No JSON object found in model response")


def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    cleaned = _FENCE_START.sub("", cleaned)
    return _FENCE_END.sub("", cleaned)


def _outermost_object(text: str) -> str | None:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def _sanitize(text: str) -> str:
    cleaned = text.replace("“", '"').replace("”", '"')
    return _TRAILING_COMMA.sub(r"\1", cleaned)
