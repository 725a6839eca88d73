"""Text normalization and value stringification shared by the engine."""

from __future__ import annotations

import json
import re
import unicodedata
from collections.abc import Iterable, Mapping
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

_WHITESPACE = re.compile(r"\s+")
_NEWLINES = re.compile(r"\r?\n")
_TOKENS = re.compile(r"\d+|\w|[^\w]", re.UNICODE)

# "Name\n(ID: 42)" or "Name (ID: 42)"
DISPLAY_ID_PATTERN = re.compile(r"\(ID:\s*([^)]+)\)")

# Letters that carry their mark in the base code point rather than as a
# combining character, so NFD alone does not strip them.
_BASE_FOLDS = str.maketrans({"đ": "d", "Đ": "d"})


def normalize_text(text: object) -> str:
    """Strip diacritics, case-fold, collapse whitespace and trim.

    Non-string input (including None) normalizes to an empty string.
    """
    if not isinstance(text, str):
        return ""
    decomposed = unicodedata.normalize("NFD", text.translate(_BASE_FOLDS))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", stripped.casefold()).strip()


def as_text(value: object) -> str:
    """Stringify a cell value the same way everywhere in the engine."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (date, datetime, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, (Mapping, list, tuple)):
        return stable_dumps(value)
    return str(value)


def encoder(obj: object) -> Any:  # noqa: ANN401
    """Convert values json cannot encode natively."""
    if isinstance(obj, (date, datetime, time)):
        return obj.isoformat()
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return bytes(obj).hex()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=as_text)
    if isinstance(obj, Iterable):
        return tuple(obj)  # pyright: ignore[reportUnknownArgumentType]
    return str(obj)


def stable_dumps(value: object) -> str:
    """Serialize a value structurally with a key-order independent result."""
    return json.dumps(value, sort_keys=True, default=encoder, ensure_ascii=False)


def display_portion(text: str) -> str:
    """Return the text before the first newline."""
    first = _NEWLINES.split(text, maxsplit=1)[0]
    return first or text


def collapse_newlines(text: str) -> str:
    """Replace newlines with single spaces and trim."""
    return _NEWLINES.sub(" ", text).strip()


def extract_display_id(value: object) -> object:
    """Extract the id of a "<Name> (ID: <id>)" display value.

    Values without the pattern, and non-string values, are returned unchanged.
    """
    if not isinstance(value, str):
        return value
    if match := DISPLAY_ID_PATTERN.search(value):
        return match.group(1).strip()
    return value


def collation_key(text: str) -> tuple[tuple[int, Any], ...]:
    """Build an accent- and case-insensitive, numeric-aware sort key.

    Punctuation sorts before digits and digits before letters; digit runs
    compare by their integer value.
    """
    tokens: list[tuple[int, Any]] = []
    for token in _TOKENS.findall(normalize_text(text)):
        if token.isdecimal():
            tokens.append((1, int(token)))
        elif token.isalpha():
            tokens.append((2, token))
        else:
            tokens.append((0, token))
    return tuple(tokens)
