"""
Recovery of the JSON object inside an LLM answer.

Vision models asked for "strictly JSON" still wrap it in Markdown fences
or add a sentence before or after. The object is taken from the first
`{` to the last `}`.

Known limitation: an answer containing two sibling objects
(`{...} and {...}`) is sliced across both and fails as invalid JSON.
"""

import json
import re
from typing import Any

from receipt_ledger.errors import UpstreamParseError


_LEADING_FENCE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"\s*```$")


def strip_code_fences(raw: Any) -> str:
    cleaned = str(raw or "").strip()
    cleaned = _LEADING_FENCE.sub("", cleaned)
    cleaned = _TRAILING_FENCE.sub("", cleaned)
    return cleaned.strip()


def parse_json_response(raw: Any) -> dict[str, Any]:
    """
    Parse the single JSON object contained in `raw`.
    
    Raises:
        UpstreamParseError: no `{...}` pair, invalid JSON, or a value
            that is not an object
    """
    cleaned = strip_code_fences(raw)
    
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise UpstreamParseError("Extractor: no JSON object found", cleaned)
    
    json_only = cleaned[start:end + 1]
    try:
        data = json.loads(json_only)
    except json.JSONDecodeError:
        raise UpstreamParseError("Extractor: invalid JSON", json_only) from None
    
    if not isinstance(data, dict):
        raise UpstreamParseError("Extractor: JSON is not an object", json_only)
    return data


def extract_response_text(response: Any) -> str:
    """
    Text of a Gemini `GenerateContentResponse`.
    
    `response.text` raises ValueError when the answer was blocked or has
    several candidates; the first candidate's text parts are used then.
    """
    try:
        text = response.text
    except (AttributeError, ValueError):
        text = None
    
    if not text:
        parts: list[str] = []
        for candidate in getattr(response, "candidates", None) or []:
            content = getattr(candidate, "content", None)
            for part in getattr(content, "parts", None) or []:
                part_text = getattr(part, "text", None)
                if part_text:
                    parts.append(part_text)
            if parts:
                break
        text = "".join(parts)
    
    if not text or not text.strip():
        raise UpstreamParseError("Extractor: no usable text in response", repr(response))
    return text
