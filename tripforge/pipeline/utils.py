import json
from typing import Any, Optional

_CLOSERS = {"{": "}", "[": "]"}


def _balanced_span(text: str, opener: str) -> Optional[str]:
    """
    Return the first balanced span that starts with `opener`.

    Brackets inside JSON string literals are ignored, so prose around the
    payload and braces inside descriptions do not confuse the scan.
    """
    if not text:
        return None
    start = text.find(opener)
    if start < 0:
        return None

    closer = _CLOSERS[opener]
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def extract_json_object(text: str) -> Optional[Any]:
    """Parse the first balanced {...} span in text; None if absent or invalid."""
    span = _balanced_span(text, "{")
    if span is None:
        return None
    try:
        return json.loads(span)
    except json.JSONDecodeError:
        return None


def extract_json_array(text: str) -> Optional[Any]:
    """Parse the first balanced [...] span in text; None if absent or invalid."""
    span = _balanced_span(text, "[")
    if span is None:
        return None
    try:
        return json.loads(span)
    except json.JSONDecodeError:
        return None
