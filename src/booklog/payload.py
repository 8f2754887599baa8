"""Codec for the EXTRA_JSON column of a log line.

The payload is always a flat object of string and integer values:

    {"author":"Herbert","fetchedAt":1000,"fetchedByUser":"alice"}

decode() never raises. A payload that is not valid JSON (hand-edited logs,
truncated writes) is scanned for whatever ``"key":"value"`` and
``"key":123`` pairs are still recognisable.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

Payload = dict[str, str | int]

_STR_PAIR_RE = re.compile(r'"((?:[^"\\]|\\.)*)"\s*:\s*"((?:[^"\\]|\\.)*)"')
_INT_PAIR_RE = re.compile(r'"((?:[^"\\]|\\.)*)"\s*:\s*(-?\d+)')

# "|" is the column delimiter of a log line, so it never appears raw in a payload.
_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t", "|": "\\u007c"}
_UNESCAPES = {"\\": "\\", '"': '"', "n": "\n", "r": "\r", "t": "\t", "/": "/"}
_UNESCAPE_RE = re.compile(r"\\(u[0-9a-fA-F]{4}|.)")


def _escape(s: str) -> str:
    return "".join(_ESCAPES.get(c, c) for c in s)


def _unescape_one(m: re.Match[str]) -> str:
    seq = m.group(1)
    if len(seq) == 5:
        return chr(int(seq[1:], 16))
    return _UNESCAPES.get(seq, seq)


def _unescape(s: str) -> str:
    return _UNESCAPE_RE.sub(_unescape_one, s)


def encode(fields: Mapping[str, str | int | None]) -> str:
    """Serialize a flat mapping. ``None`` values are written as ``""``."""
    parts = []
    for key, value in fields.items():
        if isinstance(value, bool):
            value = int(value)
        if isinstance(value, int):
            parts.append(f'"{_escape(key)}":{value}')
        else:
            parts.append(f'"{_escape(key)}":"{_escape(value or "")}"')
    return "{" + ",".join(parts) + "}"


def decode(text: str | None) -> Payload:
    """Parse a payload; malformed input degrades to partial extraction."""
    if not text or not text.strip():
        return {}
    try:
        obj = json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return _scan(text)
    if not isinstance(obj, dict):
        return _scan(text)
    out: Payload = {}
    for key, value in obj.items():
        if isinstance(value, bool):
            out[key] = int(value)
        elif isinstance(value, (int, str)):
            out[key] = value
        elif isinstance(value, float) and value.is_integer():
            out[key] = int(value)
        # nested values and nulls are not part of the format
    return out


def _scan(text: str) -> Payload:
    out: Payload = {}
    for m in _STR_PAIR_RE.finditer(text):
        out.setdefault(_unescape(m.group(1)), _unescape(m.group(2)))
    for m in _INT_PAIR_RE.finditer(text):
        out.setdefault(_unescape(m.group(1)), int(m.group(2)))
    return out


def get_str(payload: Mapping[str, str | int], key: str) -> str:
    """String value for key, ``""`` when absent."""
    value = payload.get(key)
    if value is None:
        return ""
    return str(value)


def get_int(payload: Mapping[str, str | int], key: str, default: int) -> int:
    """Integer value for key, ``default`` when absent or not a number."""
    value = payload.get(key)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default
