"""Pull a JSON object out of free-form model output.

Models wrap JSON in fenced code blocks or surround it with prose. The rules:
a ```json fence wins, then a bare ``` fence, then a reply that already starts
with ``{`` is taken as-is.
"""

from __future__ import annotations

import json
from typing import Any

_JSON_FENCE = "```json"
_FENCE = "```"


def strip_code_fence(response: str) -> str:
    if _JSON_FENCE in response:
        start = response.index(_JSON_FENCE) + len(_JSON_FENCE)
        end = response.find(_FENCE, start)
        if end > start:
            return response[start:end].strip()
    elif _FENCE in response:
        start = response.index(_FENCE) + len(_FENCE)
        end = response.find(_FENCE, start)
        if end > start:
            return response[start:end].strip()
    elif response.strip().startswith("{"):
        return response.strip()
    return response


def outermost_object(text: str) -> str:
    """Trim ``text`` to the span between the first ``{`` and the last ``}``."""

    first = text.find("{")
    if first >= 0:
        text = text[first:]
    last = text.rfind("}")
    if last >= 0:
        text = text[: last + 1]
    return text


def load_json_object(text: str) -> dict[str, Any]:
    """Decode ``text`` and require a JSON object.

    Raises:
        ValueError: The text is not JSON or not an object.
    """
    decoded = json.loads(text)
    if not isinstance(decoded, dict):
        raise ValueError(f"Expected a JSON object, got {type(decoded).__name__}")
    return decoded
