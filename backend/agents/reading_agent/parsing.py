"""
parsing.py - Tolerant extraction of JSON objects from Gemini text.

Gemini is asked for JSON but is not a guaranteed-compliant source. The text may be:
  (a) a clean object
  (b) an object wrapped in a ```json fenced block
  (c) prose with an object somewhere inside it

safe_parse_json() runs an ordered chain of parsers; the first one that yields
a dict wins, otherwise the caller falls back to plain text. Pure functions -
no I/O, no logging of the text itself.
"""
import json
import re
from typing import Any, Callable, Optional

FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def sanitize_text(text: Optional[str]) -> str:
    """Normalize \\r\\n and \\r to \\n and trim. Applied to every raw text returned to a caller."""
    return (text or "").replace("\r\n", "\n").replace("\r", "\n").strip()


def strip_code_fences(text: str) -> str:
    """Remove every ``` / ```json marker, keeping the content between them."""
    return FENCE_RE.sub("", text).strip()


def _load_object(candidate: str) -> Optional[dict[str, Any]]:
    try:
        parsed = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _parse_whole(text: str) -> Optional[dict[str, Any]]:
    """Step 1: the whole trimmed text is the object."""
    return _load_object(text)


def _parse_braced(text: str) -> Optional[dict[str, Any]]:
    """Step 2: the span from the first '{' to the last '}' (inclusive) is the object."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return _load_object(text[start:end + 1])


# Ordered - first success wins
PARSERS: tuple[Callable[[str], Optional[dict[str, Any]]], ...] = (
    _parse_whole,
    _parse_braced,
)


def safe_parse_json(text: Optional[str]) -> Optional[dict[str, Any]]:
    """
    Return the first JSON object recoverable from text, or None.

    None means "treat the response as unstructured prose".
    """
    if not text:
        return None
    cleaned = strip_code_fences(text.strip())
    for parser in PARSERS:
        parsed = parser(cleaned)
        if parsed is not None:
            return parsed
    return None


__all__ = ["sanitize_text", "strip_code_fences", "safe_parse_json"]
