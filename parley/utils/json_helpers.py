"""Utility helpers for extracting JSON values from model responses."""

from __future__ import annotations

import json
import re
from typing import Any, Iterator, List, Optional, Tuple

from ..errors import ParseError

# ``` or ```json fence, interior captured lazily so the first closing fence wins.
_FENCE_PATTERN = re.compile(r"```(?:json)?[ \t]*\r?\n?(.*?)```", re.DOTALL | re.IGNORECASE)
_OPENERS = {"{": "}", "[": "]"}


def extract_json(text: str) -> Any:
    """Return the first complete JSON value embedded in ``text``.

    A fenced code block wins over everything else in the response. Without
    one (or when its interior is not valid JSON) the text is scanned for a
    balanced ``{...}`` or ``[...]`` span; brackets inside string literals do
    not count toward nesting.

    Raises:
        ParseError: when no candidate parses as JSON.
    """

    stripped = (text or "").strip()
    if not stripped:
        raise ParseError("Cannot extract JSON from an empty response.")

    fenced = _FENCE_PATTERN.search(stripped)
    if fenced:
        try:
            return json.loads(fenced.group(1).strip())
        except (json.JSONDecodeError, RecursionError):
            pass

    for candidate in _balanced_candidates(stripped):
        try:
            return json.loads(candidate)
        except (json.JSONDecodeError, RecursionError):
            continue

    raise ParseError(f"No valid JSON value found in response: {stripped[:200]}")


def extract_json_object(text: str) -> Optional[Any]:
    """Like ``extract_json`` but returns None instead of raising."""

    try:
        return extract_json(text)
    except ParseError:
        return None


def _balanced_candidates(text: str) -> Iterator[str]:
    """Yield balanced bracket spans, in order of their opening position.

    The text is walked once. String literals are only tracked while a span
    is open, so quotes in surrounding prose do not matter. A mismatched
    closer discards every span still open.
    """

    spans: List[Tuple[int, int]] = []
    stack: List[Tuple[str, int]] = []
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if in_string:
            if escape_next:
                escape_next = False
            elif char == "\\":
                escape_next = True
            elif char == '"':
                in_string = False
            continue

        if char in _OPENERS:
            stack.append((_OPENERS[char], i))
        elif not stack:
            continue
        elif char == '"':
            in_string = True
        elif char in "}]":
            closer, start = stack.pop()
            if closer != char:
                stack.clear()
                continue
            spans.append((start, i))

    for start, end in sorted(spans):
        yield text[start : end + 1]


__all__ = ["extract_json", "extract_json_object"]
