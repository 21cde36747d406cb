"""Tolerant parsing of structured text inside model completions."""

from __future__ import annotations

import json
import re
from typing import Any

_decoder = json.JSONDecoder()

UNKNOWN_SENTINEL = "UNKNOWN"


def find_json(text: str, kind: type) -> Any | None:
    """Return the first well-formed JSON value of type `kind` (list or dict) in `text`.

    Completions often wrap JSON in prose or code fences, so every opening
    bracket is tried in turn until one decodes.
    """
    opener = "[" if kind is list else "{"
    start = text.find(opener)
    while start != -1:
        try:
            value, _ = _decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, kind):
            return value
        start = text.find(opener, start + 1)
    return None


def first_line(text: str) -> str:
    """First non-empty line, stripped of surrounding quotes and whitespace."""
    for line in text.splitlines():
        line = line.strip().strip("\"'`").strip()
        if line:
            return line
    return ""


def parse_jurisdiction(text: str) -> str | None:
    """A 'City, ST' candidate from a detection completion, or None for the sentinel."""
    candidate = first_line(text).rstrip(".")
    if not candidate or candidate.upper() == UNKNOWN_SENTINEL or "," not in candidate:
        return None
    return candidate


def parse_confidence(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not 0.0 <= value <= 1.0:
        return None
    return float(value)


def humanize(field: str) -> str:
    """'numberOfHens' -> 'number of hens'."""
    words = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", field).replace("_", " ").replace("-", " ")
    return " ".join(words.lower().split())
