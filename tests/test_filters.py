"""Tests for the tiered row filter."""

import pytest

from tablecompare.filters import (
    RelationshipContext,
    chunk_size_for,
    column_options,
    filter_rows,
    matches,
    paginate_filtered,
    split_alternatives,
)
from tablecompare.types import Relationship, TablePage


@pytest.fixture(name="context")
def create_context() -> RelationshipContext:
    """Context marking Customer as a reference column."""
    relationship = Relationship(
        fk_schema="dbo",
        fk_table="Order",
        fk_column="Customer",
        pk_schema="dbo",
        pk_table="Customer",
        pk_column="Oid",
    )
    return RelationshipContext((relationship,), include_references=True)


def test_split_alternatives() -> None:
    """Alternatives are trimmed and empty ones dropped."""
    assert split_alternatives("a || b ||  || c") == ["a", "b", "c"]
    assert split_alternatives(None) == []
    assert split_alternatives("  ") == []


def test_blank_expression_matches_everything() -> None:
    """An expression without alternatives does not filter."""
    assert matches({"Name": "An"}, "Name", "")
    assert matches({"Name": None}, "Name", " || ")


def test_alternatives_are_or_combined() -> None:
    """Any matching alternative is enough."""
    assert matches({"Name": "An"}, "Name", "xyz||An")
    assert not matches({"Name": "An"}, "Name", "xyz||abc")


def test_null_cells_only_match_null_alternatives() -> None:
    """Null cells match the null literals and nothing else."""
    assert matches({"Name": None}, "Name", "null")
    assert matches({"Name": None}, "Name", "(null)")
    assert matches({}, "Name", "NULL")
    assert not matches({"Name": None}, "Name", "An")


def test_display_with_id_exact_match(context: RelationshipContext) -> None:
    """A picker value matches the cell with the same display and id."""
    row = {"Customer": "An\n(ID: 2)", "Customer_OriginalId": "2"}

    assert matches(row, "Customer", "An (ID: 2)", context)


def test_display_with_other_id_does_not_match(context: RelationshipContext) -> None:
    """A picker value for another id falls through every tier."""
    row = {"Customer": "An\n(ID: 3)", "Customer_OriginalId": "3"}

    assert not matches(row, "Customer", "An (ID: 2)", context)


def test_original_id_exact_match(context: RelationshipContext) -> None:
    """The raw id of a reference column matches exactly."""
    row = {"Customer": "An\n(ID: 2)", "Customer_OriginalId": 2}

    assert matches(row, "Customer", "2", context)


def test_display_portion_exact_match() -> None:
    """The first line of a multi-line cell matches exactly."""
    assert matches({"Customer": "An\n(ID: 2)"}, "Customer", "An")


def test_relationship_partial_ignores_diacritics(context: RelationshipContext) -> None:
    """Reference display values match partially without accents."""
    row = {"Customer": "Nguyễn Văn A\n(ID: 42)", "Customer_OriginalId": "42"}

    assert matches(row, "Customer", "nguyen van", context)


@pytest.mark.parametrize("expression", ["ID", "ID: 7", "(ID"])
def test_reference_id_line_is_not_matched_partially(
    context: RelationshipContext,
    expression: str,
) -> None:
    """Reference cells match partially on display and raw id, not the id line."""
    row = {"Customer": "Binh\n(ID: 7)", "Customer_OriginalId": "7"}

    assert not matches(row, "Customer", expression, context)


def test_reference_matches_partial_raw_id(context: RelationshipContext) -> None:
    """The raw id of a reference column matches partially."""
    row = {"Customer": "Binh\n(ID: 1207)", "Customer_OriginalId": "1207"}

    assert matches(row, "Customer", "20", context)


def test_references_ignored_without_include_references() -> None:
    """Without include_references the rendered cell is matched as plain text."""
    relationship = Relationship("dbo", "Order", "Customer", "dbo", "Customer", "Oid")
    row = {"Customer": "Binh\n(ID: 7)", "Customer_OriginalId": "7"}

    assert not RelationshipContext((relationship,)).has_relationship("Customer")
    assert matches(row, "Customer", "ID: 7", RelationshipContext((relationship,)))


ROWS = [
    {"Customer": "Nguyễn Văn An\n(ID: 7)", "Customer_OriginalId": "7", "Qty": 3},
    {"Customer": "Binh\n(ID: 12)", "Customer_OriginalId": 12, "Qty": None},
    {"Customer": None, "Customer_OriginalId": None, "Qty": 12.0},
    {"Customer": "Đặng Chi", "Qty": "đ"},
]
ALTERNATIVE_PAIRS = [
    ("an", "binh"),
    ("7", "ID"),
    ("null", "12"),
    ("Binh (ID: 12)", "dang"),
    ("(null)", "xyz"),
    ("3", "chi"),
]


@pytest.mark.parametrize(("first", "second"), ALTERNATIVE_PAIRS)
@pytest.mark.parametrize("column", ["Customer", "Qty"])
@pytest.mark.parametrize("row", ROWS)
def test_alternatives_match_as_or(  # noqa: PLR0913
    context: RelationshipContext,
    row: dict[str, object],
    column: str,
    first: str,
    second: str,
) -> None:
    """An expression a||b matches exactly when a or b matches alone."""
    combined = matches(row, column, f"{first}||{second}", context)

    assert combined == (
        matches(row, column, first, context) or matches(row, column, second, context)
    )


def test_generic_partial_is_case_insensitive() -> None:
    """Plain columns match substrings regardless of case."""
    assert matches({"Note": "Hello World"}, "Note", "WORLD")
    assert matches({"Note": "Trần Thị"}, "Note", "tran")
    assert not matches({"Note": "Hello"}, "Note", "bye")


def test_numeric_cells_match_text() -> None:
    """Numbers are compared through their text."""
    assert matches({"Qty": 12}, "Qty", "12")
    assert matches({"Price": 3.0}, "Price", "3")


def test_filter_rows_and_across_columns() -> None:
    """Every active column filter must match."""
    rows = [
        {"Name": "An", "City": "Hue"},
        {"Name": "An", "City": "Hanoi"},
        {"Name": "Binh", "City": "Hue"},
    ]

    kept = filter_rows(rows, {"Name": "An", "City": "Hue", "Note": "  "})

    assert kept == [rows[0]]


def test_filter_rows_without_filters() -> None:
    """No filters keeps every row."""
    rows = [{"Name": "An"}]

    assert filter_rows(rows) == rows


def test_column_options_for_reference(context: RelationshipContext) -> None:
    """Reference columns offer one picker option per id."""
    rows = [
        {"Customer": "An\n(ID: 1)", "Customer_OriginalId": 1},
        {"Customer": "An\n(ID: 1)", "Customer_OriginalId": 1},
        {"Customer": None},
        {"Customer": "Binh\n(ID: 2)", "Customer_OriginalId": 2},
    ]

    options = column_options(rows, "Customer", context)

    assert options == ["An (ID: 1)", "(null)", "Binh (ID: 2)"]


def test_column_options_for_plain_column() -> None:
    """Plain columns offer their distinct values in first-seen order."""
    rows = [{"City": "Hue"}, {"City": "Hanoi"}, {"City": " Hue "}]

    assert column_options(rows, "City") == ["Hue", "Hanoi"]


def test_chunk_size_is_clamped() -> None:
    """Chunk sizes stay within bounds."""
    assert chunk_size_for(10) == 500
    assert chunk_size_for(1000) == 1000
    assert chunk_size_for(10000) == 5000


def test_paginate_filtered_window() -> None:
    """Filtered rows are counted across chunks and windowed."""
    chunks = [
        TablePage(
            columns=("N",),
            rows=({"N": "a1"}, {"N": "b1"}, {"N": "a2"}),
            total_rows=6,
            has_more=True,
        ),
        TablePage(
            columns=("N",),
            rows=({"N": "a3"}, {"N": "b2"}, {"N": "a4"}),
            total_rows=6,
            has_more=False,
        ),
    ]

    page = paginate_filtered(chunks, {"N": "a"}, limit=2, offset=1)

    assert page.rows == ({"N": "a2"}, {"N": "a3"})
    assert page.filtered_row_count == 4
    assert page.total_rows == 6
    assert page.columns == ("N",)
    assert page.has_more


def test_paginate_filtered_last_window() -> None:
    """The final window reports no more rows."""
    chunk = TablePage(("N",), ({"N": "a1"}, {"N": "a2"}), total_rows=2)

    page = paginate_filtered([chunk], {"N": "a"}, limit=5)

    assert len(page.rows) == 2
    assert not page.has_more
