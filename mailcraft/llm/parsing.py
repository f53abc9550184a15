from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_decoder = json.JSONDecoder()


def _candidates(text: str) -> list[str]:
    # Fenced blocks win over surrounding prose, which may contain stray braces.
    blocks = [block.strip() for block in _FENCE_RE.findall(text)]
    return [block for block in blocks if block] + [text]


def _first_object(text: str) -> dict[str, Any] | None:
    index = text.find("{")
    while index != -1:
        try:
            value, _ = _decoder.raw_decode(text, index)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, dict):
            return value
        index = text.find("{", index + 1)
    return None


def parse_json_object(text: str) -> dict[str, Any]:
    """Return the first JSON object found in a model reply.

    Replies may wrap the object in markdown fences or prose. Raises ``ValueError``
    when no complete object can be decoded.
    """
    if not isinstance(text, str) or not text.strip():
        raise ValueError("Model reply is empty")
    for candidate in _candidates(text.strip()):
        parsed = _first_object(candidate)
        if parsed is not None:
            return parsed
    raise ValueError("No JSON object found in model reply")
