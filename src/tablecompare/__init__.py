"""Row alignment, filtering and diffing for tables of two databases."""

from tablecompare.alignment import align_rows
from tablecompare.diff import DiffSummary, diff_rows, summarize
from tablecompare.filters import RelationshipContext, filter_rows, matches
from tablecompare.index import JoinIndex, build_join_indexes
from tablecompare.main import (
    TableComparison,
    TableInput,
    compare_tables,
    comparison_to_html,
    comparison_to_json,
    comparison_to_summary,
)
from tablecompare.normalize import normalize_text
from tablecompare.types import (
    CombinedColumn,
    ComparisonResult,
    JoinedColumn,
    NullRow,
    Relationship,
    TablePage,
    TableRef,
)
from tablecompare.virtual import Resolver, resolve_value

__all__ = [
    "CombinedColumn",
    "ComparisonResult",
    "DiffSummary",
    "JoinIndex",
    "JoinedColumn",
    "NullRow",
    "Relationship",
    "RelationshipContext",
    "Resolver",
    "TableComparison",
    "TableInput",
    "TablePage",
    "TableRef",
    "align_rows",
    "build_join_indexes",
    "compare_tables",
    "comparison_to_html",
    "comparison_to_json",
    "comparison_to_summary",
    "diff_rows",
    "filter_rows",
    "matches",
    "normalize_text",
    "resolve_value",
    "summarize",
]
