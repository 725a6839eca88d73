"""Main table comparison functionality."""

from __future__ import annotations

import json
from functools import partial
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Any, NamedTuple

from jinja2 import Environment, FileSystemLoader, select_autoescape

from tablecompare.alignment import align_rows
from tablecompare.columns import (
    categorize_columns,
    normalize_column_name,
    visible_columns,
)
from tablecompare.diff import DiffSummary, diff_rows, summarize
from tablecompare.filters import RelationshipContext, filter_rows
from tablecompare.index import DEFAULT_KEY_COLUMN, JoinIndex, build_join_indexes
from tablecompare.normalize import encoder
from tablecompare.types import is_null_row
from tablecompare.virtual import (
    Resolver,
    columns_for_side,
    materialize,
    validate_virtual_columns,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from jinja2.environment import TemplateStream

    from tablecompare.types import (
        AlignedRows,
        ComparisonResult,
        Relationship,
        Row,
        Side,
        TablePage,
        TableRef,
        VirtualColumn,
    )

logger = getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"


class TableInput(NamedTuple):
    """One side of a comparison: a table page with its context.

    Join pages are the related tables this side's joined columns read from,
    keyed by table key.
    """

    ref: TableRef
    page: TablePage
    relationships: tuple[Relationship, ...] = ()
    filters: Mapping[str, str] | None = None
    join_pages: Mapping[str, TablePage] | None = None


class PreparedSide(NamedTuple):
    """Rows of one side after virtual columns and filters were applied."""

    rows: list[Row]
    columns: tuple[str, ...]
    rejected: tuple[VirtualColumn, ...]


class TableComparison(NamedTuple):
    """Complete comparison result for a pair of tables."""

    name: str
    columns: tuple[str, ...]
    left_columns: tuple[str, ...]
    right_columns: tuple[str, ...]
    aligned: AlignedRows
    results: list[ComparisonResult]
    summary: DiffSummary
    rejected: tuple[VirtualColumn, ...]
    right_names: Mapping[str, str]

    def right_value(self, row: Row, column: str) -> Any:  # noqa: ANN401
        """Value of a right row's column under its right-side spelling."""
        return renamed_value(self.right_names, row, column)


def shared_column_names(
    left_columns: Sequence[str],
    right_columns: Sequence[str],
) -> dict[str, str]:
    """Right-side spelling of every shared column, keyed by its left name."""
    right: dict[str, str] = {}
    for column in right_columns:
        right.setdefault(normalize_column_name(column), column)
    return {
        column: right[normalize_column_name(column)]
        for column in categorize_columns(left_columns, right_columns).both
    }


def renamed_value(
    names: Mapping[str, str],
    row: Row,
    column: str,
) -> Any:  # noqa: ANN401
    """Read a column through a rename map, other columns as they are."""
    return row.get(names.get(column, column))


def prepare_side(
    table: TableInput,
    side: Side,
    virtual_columns: Sequence[VirtualColumn],
    join_indexes: Mapping[str, JoinIndex],
    key_column: str = DEFAULT_KEY_COLUMN,
) -> PreparedSide:
    """Materialize a side's virtual columns and apply its filters."""
    columns = table.page.columns
    own_virtual = [v for v in virtual_columns if v.side == side]
    rejected = validate_virtual_columns(own_virtual, columns).invalid

    indexes = {
        **join_indexes,
        **build_join_indexes(table.join_pages or {}, key_column),
        table.ref.key: JoinIndex.build(table.page.rows, key_column),
    }
    resolver = Resolver.for_side(side, own_virtual, columns, indexes, table.ref)

    rows = materialize(table.page.rows, resolver)
    context = RelationshipContext(table.relationships, include_references=True)
    filtered = filter_rows(rows, table.filters, context)
    logger.debug("%s side kept %d of %d rows", side, len(filtered), len(rows))

    return PreparedSide(
        rows=filtered,
        columns=columns_for_side(columns, resolver.virtual_columns.values(), side),
        rejected=rejected,
    )


def comparison_name(left: TableRef, right: TableRef) -> str:
    """Shared table name, or both names when they differ."""
    if left.table == right.table:
        return left.table
    return f"{left.table} / {right.table}"


def compare_tables(  # noqa: PLR0913
    left: TableInput,
    right: TableInput,
    columns: Sequence[str] = (),
    *,
    virtual_columns: Iterable[VirtualColumn] = (),
    join_pages: Mapping[str, TablePage] | None = None,
    key_column: str = DEFAULT_KEY_COLUMN,
) -> TableComparison:
    """Align and diff two table pages.

    Rows are aligned and compared on the given columns. Without columns the
    pages are paired positionally and compared on every column they share.
    """
    virtual_columns = tuple(virtual_columns)
    join_indexes = build_join_indexes(join_pages or {}, key_column)

    left_side = prepare_side(left, "left", virtual_columns, join_indexes, key_column)
    right_side = prepare_side(right, "right", virtual_columns, join_indexes, key_column)

    right_names = shared_column_names(left_side.columns, right_side.columns)
    right_value = partial(renamed_value, right_names)

    aligned = align_rows(
        left_side.rows,
        right_side.rows,
        columns,
        left_side.columns,
        right_side.columns,
        right_resolver=right_value,
    )
    compared = tuple(columns) or tuple(right_names)
    results = diff_rows(
        aligned.left,
        aligned.right,
        compared,
        right_resolver=right_value,
    )

    return TableComparison(
        name=comparison_name(left.ref, right.ref),
        columns=compared,
        left_columns=left_side.columns,
        right_columns=right_side.columns,
        aligned=aligned,
        results=results,
        summary=summarize(results),
        rejected=(*left_side.rejected, *right_side.rejected),
        right_names=right_names,
    )


def _row(row: Row | None) -> dict[str, Any] | None:
    return None if is_null_row(row) else dict(row)


def comparison_to_dict(comparison: TableComparison) -> dict[str, Any]:
    """Plain data view of a comparison."""
    return {
        "name": comparison.name,
        "columns": comparison.columns,
        "left_columns": comparison.left_columns,
        "right_columns": comparison.right_columns,
        "summary": comparison_to_summary(comparison),
        "results": [
            {
                "status": result.status,
                "left": _row(result.left_row),
                "right": _row(result.right_row),
                "diff_columns": result.diff_columns,
            }
            for result in comparison.results
        ],
        "rejected": [column.name for column in comparison.rejected],
    }


def comparison_to_json(comparison: TableComparison) -> str:
    """Convert comparison result to JSON string."""
    return json.dumps(
        comparison_to_dict(comparison),
        default=encoder,
        ensure_ascii=False,
    )


def comparison_to_summary(comparison: TableComparison) -> dict[str, Any]:
    """Counts of aligned pairs by status, suitable for terminal tables."""
    summary = comparison.summary
    return {
        "name": comparison.name,
        **summary._asdict(),
        "differences": summary.differences,
        "total": summary.total,
    }


def report_columns(comparison: TableComparison) -> tuple[str, ...]:
    """Compared columns followed by the other shared visible columns."""
    shared = categorize_columns(comparison.left_columns, comparison.right_columns).both
    rest = (c for c in visible_columns(shared) if c not in comparison.columns)
    return (*comparison.columns, *rest)


def comparison_to_html(comparison: TableComparison) -> TemplateStream:
    """Generate HTML report from comparison result."""
    env = Environment(
        loader=FileSystemLoader(TEMPLATE_DIR),
        autoescape=select_autoescape(),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    template = env.get_template("report.html")

    return template.stream(
        comparison=comparison,
        columns=report_columns(comparison),
        summary=comparison_to_summary(comparison),
    )
