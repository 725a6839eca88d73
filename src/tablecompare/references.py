"""Rendering of foreign key cells as "Name\\n(ID: id)" display values."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

from tablecompare.filters import ORIGINAL_ID_SUFFIX
from tablecompare.index import DEFAULT_KEY_COLUMN, build_join_indexes
from tablecompare.normalize import as_text

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from tablecompare.types import Relationship, Row, TablePage, TableRef

logger = getLogger(__name__)

DEFAULT_DISPLAY_COLUMNS = ("Name", "Ten", "TenHienThi", "HoTen", "Code", "Ma")


def format_reference(display: object, identifier: object) -> str:
    """Display value carrying the raw identifier on a second line."""
    return f"{as_text(display)}\n(ID: {as_text(identifier)})"


def display_value(row: Row, display_columns: Iterable[str]) -> object | None:
    """First non-empty display column value of a related row."""
    for column in display_columns:
        value = row.get(column)
        if value is not None and as_text(value).strip():
            return value
    return None


def render_references(  # noqa: PLR0913
    page: TablePage,
    table_ref: TableRef,
    relationships: Iterable[Relationship],
    related_pages: Mapping[str, TablePage],
    display_columns: Sequence[str] = DEFAULT_DISPLAY_COLUMNS,
    key_column: str = DEFAULT_KEY_COLUMN,
) -> TablePage:
    """Replace outgoing fk values with display values plus OriginalId companions.

    Keys without a related row, or whose related row has no display value,
    keep their raw value but still get the companion column.
    """
    outgoing = [rel for rel in relationships if rel.is_fk_side(table_ref)]
    if not outgoing:
        return page

    indexes = build_join_indexes(related_pages, key_column)
    companions = tuple(
        dict.fromkeys(f"{rel.fk_column}{ORIGINAL_ID_SUFFIX}" for rel in outgoing),
    )
    unresolved = 0

    rows: list[dict[str, Any]] = []
    for row in page.rows:
        rendered = dict(row)
        for rel in outgoing:
            raw = row.get(rel.fk_column)
            rendered[f"{rel.fk_column}{ORIGINAL_ID_SUFFIX}"] = raw
            if raw is None:
                continue
            index = indexes.get(rel.pk_key)
            related = index.lookup(rel.pk_column, raw) if index is not None else None
            display = display_value(related, display_columns) if related else None
            if display is None:
                unresolved += 1
                continue
            rendered[rel.fk_column] = format_reference(display, raw)
        rows.append(rendered)

    if unresolved:
        logger.debug(
            "%d reference values of %s had no display",
            unresolved,
            table_ref.key,
        )

    columns = (*page.columns, *(c for c in companions if c not in page.columns))
    return page._replace(columns=columns, rows=tuple(rows))
