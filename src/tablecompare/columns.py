"""Column set helpers for comparing tables with differing structures."""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from collections.abc import Iterable

HIDDEN_COLUMNS = ("HinhAnh",)
HIDDEN_COLUMN_PATTERNS = ("_OriginalId",)


class ColumnCategories(NamedTuple):
    """Columns present on only one side or on both."""

    left_only: tuple[str, ...]
    right_only: tuple[str, ...]
    both: tuple[str, ...]


def normalize_column_name(column: object) -> str:
    """Trim and lower-case a column name for comparison."""
    return str(column).strip().lower()


def categorize_columns(
    left: Iterable[object],
    right: Iterable[object],
) -> ColumnCategories:
    """Categorize columns by side, matching names case-insensitively.

    Shared columns are reported under their left-side name.
    """
    left_names = list(dict.fromkeys(str(column) for column in left))
    right_names = list(dict.fromkeys(str(column) for column in right))
    left_keys = {normalize_column_name(column) for column in left_names}
    right_keys = {normalize_column_name(column) for column in right_names}

    both: dict[str, str] = {}
    for column in left_names:
        both.setdefault(normalize_column_name(column), column)

    return ColumnCategories(
        left_only=tuple(
            c for c in left_names if normalize_column_name(c) not in right_keys
        ),
        right_only=tuple(
            c for c in right_names if normalize_column_name(c) not in left_keys
        ),
        both=tuple(column for key, column in both.items() if key in right_keys),
    )


def columns_to_display(
    columns: Iterable[object],
    selected: Iterable[str],
) -> tuple[str, ...]:
    """Selected columns in table order, keeping the table's spelling."""
    wanted = {normalize_column_name(column) for column in selected}
    return tuple(str(c) for c in columns if normalize_column_name(c) in wanted)


def is_hidden_column(
    column: object,
    hidden: Iterable[str] = HIDDEN_COLUMNS,
    patterns: Iterable[str] = HIDDEN_COLUMN_PATTERNS,
) -> bool:
    """Whether a column is excluded from display by name or suffix."""
    name = str(column).strip()
    if name.lower() in {h.lower() for h in hidden}:
        return True
    return any(name.endswith(pattern) for pattern in patterns)


def visible_columns(
    columns: Iterable[object] | None,
    hidden: Iterable[str] = HIDDEN_COLUMNS,
    patterns: Iterable[str] = HIDDEN_COLUMN_PATTERNS,
) -> tuple[str, ...]:
    """Columns left after removing hidden ones."""
    hidden, patterns = tuple(hidden), tuple(patterns)
    return tuple(
        str(column)
        for column in columns or ()
        if not is_hidden_column(column, hidden, patterns)
    )
