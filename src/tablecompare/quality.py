"""Duplicate and redundancy checks over a page of rows."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, NamedTuple

from tablecompare.normalize import stable_dumps

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tablecompare.types import Row

EMPTY_MARKER = "∅"
SAMPLE_COLUMNS = 3

_DISPLAY_ID_LINE = re.compile(r"\n\(ID:\s*[^)]+\)")
_DISPLAY_ID_SUFFIX = re.compile(r"\(ID:\s*[^)]+\)$")
_DIGITS = re.compile(r"^\d+$")
_WHITESPACE = re.compile(r"\s+")


class DuplicateGroup(NamedTuple):
    """Rows sharing the same normalized signature."""

    signature: str
    indices: tuple[int, ...]
    sample_row: dict[str, Any]
    column: str | None = None
    display_value: str | None = None


class DataQualitySummary(NamedTuple):
    """Duplicate rows, duplicate display names and single-valued columns."""

    duplicate_groups: tuple[DuplicateGroup, ...] = ()
    duplicate_indices: frozenset[int] = frozenset()
    redundant_columns: tuple[str, ...] = ()
    name_duplicate_groups: tuple[DuplicateGroup, ...] = ()
    name_duplicate_indices: frozenset[int] = frozenset()


def signature_value(value: object) -> str:
    """Normalize a value for duplicate detection."""
    if value is None:
        return EMPTY_MARKER
    if isinstance(value, str):
        cleaned = value
        if _DISPLAY_ID_LINE.search(cleaned):
            cleaned = cleaned.split("\n(ID:")[0]
        cleaned = _DISPLAY_ID_SUFFIX.sub("", cleaned.strip())
        cleaned = _WHITESPACE.sub(" ", cleaned).strip()
        if not cleaned:
            return EMPTY_MARKER
        # numeric strings keep leading zeros and case
        if _DIGITS.match(cleaned):
            return cleaned
        return cleaned.lower()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return stable_dumps(value)


def display_name(value: object) -> str:
    """Text before the first newline or "(ID" marker."""
    if value is None:
        return ""
    raw = str(value)
    end = len(raw)
    for marker in ("\n", "(ID"):
        if (position := raw.find(marker)) >= 0:
            end = min(end, position)
    return raw[:end].strip()


def sample(row: Row, columns: Sequence[str]) -> dict[str, Any]:
    """First few column values of a row."""
    return {column: row.get(column) for column in columns[:SAMPLE_COLUMNS]}


def analyze_data_quality(
    rows: Sequence[Row],
    columns: Sequence[str],
    name_columns: Sequence[str] = ("Oid",),
) -> DataQualitySummary:
    """Find duplicate rows, duplicate display names and redundant columns."""
    if not rows or not columns:
        return DataQualitySummary()

    signatures: dict[str, list[int]] = {}
    for index, row in enumerate(rows):
        signature = "|".join(signature_value(row.get(column)) for column in columns)
        signatures.setdefault(signature, []).append(index)

    duplicate_groups = tuple(
        DuplicateGroup(signature, tuple(indices), sample(rows[indices[0]], columns))
        for signature, indices in signatures.items()
        if len(indices) > 1
    )

    redundant_columns = tuple(
        column
        for column in columns
        if len({signature_value(row.get(column)) for row in rows}) <= 1
    )

    names: dict[str, tuple[str, str, list[int]]] = {}
    for index, row in enumerate(rows):
        for column in name_columns:
            if not (original := display_name(row.get(column))):
                continue
            key = f"{column}:{original.lower()}"
            names.setdefault(key, (column, original, []))[2].append(index)

    name_duplicate_groups = tuple(
        DuplicateGroup(
            signature=key,
            indices=tuple(indices),
            sample_row={"DisplayName": original, **sample(rows[indices[0]], columns)},
            column=column,
            display_value=original,
        )
        for key, (column, original, indices) in names.items()
        if len(indices) > 1
    )

    return DataQualitySummary(
        duplicate_groups=duplicate_groups,
        duplicate_indices=frozenset(i for g in duplicate_groups for i in g.indices),
        redundant_columns=redundant_columns,
        name_duplicate_groups=name_duplicate_groups,
        name_duplicate_indices=frozenset(
            i for g in name_duplicate_groups for i in g.indices
        ),
    )
