"""
Whitespace normalization for extracted payloads.

LLM replies tend to carry stray blank lines and indented Markdown. Every
string leaf of a payload is cleaned before it reaches a caller; containers
keep their keys and ordering untouched.
"""

import re
from typing import Any, Callable, Union

JSONValue = Union[dict[str, Any], list[Any], str, int, float, bool, None]

_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_REPEATED_BLANK_LINES = re.compile(r"\n(?:[ \t]*\n){2,}")


def transform(value: JSONValue, fn: Callable[[str], str]) -> JSONValue:
    """
    Apply ``fn`` to every string leaf of a JSON value.

    Dicts and lists are rebuilt with the same keys and order; numbers,
    booleans and None are returned as-is. Keys are never passed to ``fn``.
    """
    if isinstance(value, str):
        return fn(value)
    if isinstance(value, dict):
        return {k: transform(v, fn) for k, v in value.items()}
    if isinstance(value, list):
        return [transform(item, fn) for item in value]
    return value


def normalize_text(text: str) -> str:
    """
    Clean up whitespace in a single string.

    Rules, in order:
    1. Runs of 3+ newlines become exactly 2.
    2. Each line is stripped.
    3. Runs of 2+ blank lines collapse to a single blank line.
    4. The whole string is stripped.

    ``\\r\\n`` counts as a line break; a lone ``\\r`` is ordinary content.
    """
    text = text.replace("\r\n", "\n")
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _REPEATED_BLANK_LINES.sub("\n\n", text)
    return text.strip()


def normalize(value: JSONValue) -> JSONValue:
    """Normalize every string leaf of an extracted payload."""
    return transform(value, normalize_text)
