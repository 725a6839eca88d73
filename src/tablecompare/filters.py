"""Tiered, multi-valued row filters tolerant of reference display values."""

from __future__ import annotations

import re
from logging import getLogger
from typing import TYPE_CHECKING, Any, NamedTuple

from tablecompare.columns import normalize_column_name
from tablecompare.normalize import (
    as_text,
    collapse_newlines,
    display_portion,
    normalize_text,
)
from tablecompare.types import TablePage

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

    from tablecompare.types import Relationship, Row

logger = getLogger(__name__)

ALTERNATIVE_SEPARATOR = "||"
ORIGINAL_ID_SUFFIX = "_OriginalId"
NULL_LITERALS = frozenset({"null", ""})
NULL_OPTION = "(null)"

MIN_CHUNK_SIZE = 500
MAX_CHUNK_SIZE = 5000

# "Display (ID: 42)", as produced by the option pickers
_COMBOBOX_PATTERN = re.compile(r"^(.+?)\s*\(ID:\s*(.+?)\)$")


class RelationshipContext(NamedTuple):
    """Relationships that mark columns as references while filtering."""

    relationships: Sequence[Relationship] = ()
    include_references: bool = False

    def has_relationship(self, column: str) -> bool:
        """Whether the column is the fk column of a known relationship."""
        if not self.include_references:
            return False
        name = normalize_column_name(column)
        return any(
            normalize_column_name(rel.fk_column) == name for rel in self.relationships
        )


class Cell(NamedTuple):
    """A row's cell seen the ways a filter may refer to it."""

    value: Any
    text: str
    display: str
    original_id: str | None
    has_relationship: bool

    @classmethod
    def of(cls, row: Row, column: str, context: RelationshipContext) -> Cell:
        """Build the cell view for a row's column."""
        value = row.get(column)
        text = as_text(value)
        original_id = row.get(f"{column}{ORIGINAL_ID_SUFFIX}")
        return cls(
            value=value,
            text=text,
            display=display_portion(text).strip(),
            original_id=None if original_id is None else as_text(original_id).strip(),
            has_relationship=context.has_relationship(column),
        )

    @property
    def is_reference(self) -> bool:
        """Whether the cell is a rendered reference with its raw id."""
        return self.has_relationship and self.original_id is not None


type Tier = Callable[[Cell, str], bool]


def split_alternatives(expression: str | None) -> list[str]:
    """Split an OR expression into its trimmed, non-empty alternatives."""
    if not expression:
        return []
    alternatives = (part.strip() for part in expression.split(ALTERNATIVE_SEPARATOR))
    return [alternative for alternative in alternatives if alternative]


def matches_null(alternative: str) -> bool:
    """Whether an alternative selects null cells."""
    return (
        normalize_text(alternative) in NULL_LITERALS
        or alternative.strip().lower() == NULL_OPTION
    )


def exact_text(cell: Cell, alternative: str) -> bool:
    """Whole cell equals the alternative."""
    return cell.text.strip() == alternative


def exact_display(cell: Cell, alternative: str) -> bool:
    """Display portion equals the alternative or its first line."""
    return cell.display in (alternative, display_portion(alternative).strip())


def exact_original_id(cell: Cell, alternative: str) -> bool:
    """OriginalId companion equals the alternative."""
    return cell.original_id is not None and cell.original_id == alternative


def exact_display_with_id(cell: Cell, alternative: str) -> bool:
    """Picker-formatted alternative matches both display and OriginalId."""
    match = _COMBOBOX_PATTERN.match(alternative)
    if match is None:
        return cell.display == collapse_newlines(alternative)
    if cell.original_id is None:
        return False

    display, identifier = (part.strip() for part in match.groups())
    if cell.display == display and cell.original_id == identifier:
        return True
    return collapse_newlines(cell.text) == f"{display} (ID: {identifier})"


def exact_collapsed(cell: Cell, alternative: str) -> bool:
    """Cell equals the alternative once newlines become spaces."""
    collapsed = collapse_newlines(cell.text)
    return collapsed in (alternative, collapse_newlines(alternative))


EXACT_TIERS: tuple[Tier, ...] = (
    exact_text,
    exact_display,
    exact_original_id,
    exact_display_with_id,
    exact_collapsed,
)


def _contains(haystack: str, alternative: str) -> bool:
    """Diacritic-insensitive or lower-cased containment of the alternative."""
    first_line = display_portion(alternative).strip()
    folded = normalize_text(haystack)
    lowered = haystack.lower()
    return (
        normalize_text(first_line) in folded
        or first_line.lower() in lowered
        or normalize_text(alternative) in folded
        or alternative.lower() in lowered
    )


def relationship_partial(cell: Cell, alternative: str) -> bool:
    """Partial match of a reference column on its display or raw id."""
    if not cell.is_reference or cell.original_id is None:
        return False
    if _contains(cell.display, alternative):
        return True
    return (
        alternative.lower() in cell.original_id.lower()
        or normalize_text(alternative) in normalize_text(cell.original_id)
    )


def generic_partial(cell: Cell, alternative: str) -> bool:
    """Partial match anywhere in the cell text."""
    return _contains(cell.text, alternative)


def partial_tier(cell: Cell) -> Tier:
    """References match partially on display and id only, other cells anywhere."""
    return relationship_partial if cell.is_reference else generic_partial


def matches_alternative(cell: Cell, alternative: str) -> bool:
    """Evaluate one alternative through the null, exact and partial tiers."""
    if cell.value is None:
        return matches_null(alternative)
    tiers = (*EXACT_TIERS, partial_tier(cell))
    return any(tier(cell, alternative) for tier in tiers)


def matches(
    row: Row,
    column: str,
    expression: str | None,
    context: RelationshipContext | None = None,
) -> bool:
    """Whether the row's column satisfies any alternative of the expression.

    An expression without non-empty alternatives matches every row.
    """
    alternatives = split_alternatives(expression)
    if not alternatives:
        return True
    cell = Cell.of(row, column, context or RelationshipContext())
    return any(matches_alternative(cell, alternative) for alternative in alternatives)


def active_filters(filters: Mapping[str, str]) -> dict[str, str]:
    """Trimmed filters with blank expressions removed."""
    return {
        column: expression.strip()
        for column, expression in filters.items()
        if split_alternatives(expression)
    }


def filter_rows(
    rows: Iterable[Row],
    filters: Mapping[str, str] | None = None,
    context: RelationshipContext | None = None,
) -> list[Row]:
    """Keep rows matching every active column filter."""
    active = active_filters(filters or {})
    if not active:
        return list(rows)
    context = context or RelationshipContext()
    return [
        row
        for row in rows
        if all(
            matches(row, column, expression, context)
            for column, expression in active.items()
        )
    ]


def column_options(
    rows: Iterable[Row],
    column: str,
    context: RelationshipContext | None = None,
) -> list[str]:
    """Distinct filter options for a column in first-seen order.

    Reference columns offer one "Display (ID: id)" option per OriginalId.
    """
    context = context or RelationshipContext()
    options: dict[str, str] = {}

    for row in rows:
        cell = Cell.of(row, column, context)
        if cell.value is None:
            options.setdefault("__null__", NULL_OPTION)
        elif cell.is_reference and cell.original_id is not None:
            option = (
                f"{cell.display} (ID: {cell.original_id})"
                if cell.display
                else cell.text.strip()
            )
            options.setdefault(cell.original_id, option)
        else:
            options.setdefault(cell.text.strip(), cell.text.strip())

    return list(options.values())


def chunk_size_for(limit: int) -> int:
    """Chunk size used to stream a table while filtering it."""
    return min(max(limit, MIN_CHUNK_SIZE), MAX_CHUNK_SIZE)


def paginate_filtered(
    chunks: Iterable[TablePage],
    filters: Mapping[str, str],
    context: RelationshipContext | None = None,
    limit: int = 100,
    offset: int = 0,
) -> TablePage:
    """Filter a stream of pages and cut out the requested window."""
    columns: tuple[str, ...] = ()
    total_rows = 0
    filtered_count = 0
    window: list[Row] = []
    chunk_count = 0

    for chunk_count, chunk in enumerate(chunks, start=1):
        if chunk_count == 1:
            columns, total_rows = chunk.columns, chunk.total_rows
        for row in filter_rows(chunk.rows, filters, context):
            filtered_count += 1
            if filtered_count > offset and len(window) < limit:
                window.append(row)
        if not chunk.has_more or not chunk.rows:
            break

    logger.debug(
        "Filtered %d of %d rows in %d chunks",
        filtered_count,
        total_rows,
        chunk_count,
    )
    return TablePage(
        columns=columns,
        rows=tuple(window),
        total_rows=total_rows,
        has_more=filtered_count > offset + len(window),
        filtered_row_count=filtered_count,
    )


