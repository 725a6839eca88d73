"""Tests for rendering reference cells."""

import pytest

from tablecompare.filters import RelationshipContext, matches
from tablecompare.references import format_reference, render_references
from tablecompare.types import Relationship, TablePage, TableRef

ORDER = TableRef("dbo", "Order")

TO_CUSTOMER = Relationship(
    fk_schema="dbo",
    fk_table="Order",
    fk_column="CustomerId",
    pk_schema="dbo",
    pk_table="Customer",
    pk_column="Oid",
)


@pytest.fixture(name="rendered")
def create_rendered_page() -> TablePage:
    """Order page with its customer references rendered."""
    page = TablePage(
        columns=("Oid", "CustomerId"),
        rows=(
            {"Oid": "1", "CustomerId": "42"},
            {"Oid": "2", "CustomerId": "99"},
            {"Oid": "3", "CustomerId": None},
        ),
        total_rows=3,
    )
    customers = TablePage(
        columns=("Oid", "Name"),
        rows=({"Oid": "42", "Name": "Nguyen Van A"},),
    )
    return render_references(page, ORDER, [TO_CUSTOMER], {"dbo.Customer": customers})


def test_format_reference() -> None:
    """Display values carry the id on a second line."""
    assert format_reference("An", 2) == "An\n(ID: 2)"


def test_resolved_reference_is_rendered(rendered: TablePage) -> None:
    """Known keys show the related display value."""
    row = rendered.rows[0]

    assert row["CustomerId"] == "Nguyen Van A\n(ID: 42)"
    assert row["CustomerId_OriginalId"] == "42"


def test_unresolved_reference_keeps_raw_value(rendered: TablePage) -> None:
    """Unknown and null keys keep their value and get a companion."""
    assert rendered.rows[1]["CustomerId"] == "99"
    assert rendered.rows[1]["CustomerId_OriginalId"] == "99"
    assert rendered.rows[2]["CustomerId"] is None
    assert rendered.rows[2]["CustomerId_OriginalId"] is None


def test_companion_column_is_added(rendered: TablePage) -> None:
    """The companion column follows the page columns."""
    assert rendered.columns == ("Oid", "CustomerId", "CustomerId_OriginalId")
    assert rendered.total_rows == 3


def test_rendered_reference_matches_picker_value(rendered: TablePage) -> None:
    """Rendered cells match the option offered for them."""
    context = RelationshipContext((TO_CUSTOMER,), include_references=True)

    assert matches(rendered.rows[0], "CustomerId", "Nguyen Van A (ID: 42)", context)
    assert not matches(rendered.rows[0], "CustomerId", "Nguyen Van A (ID: 9)", context)


def test_page_without_outgoing_relationships_is_unchanged() -> None:
    """Tables that reference nothing are returned as they are."""
    page = TablePage(("Oid",), ({"Oid": "1"},))
    customer = TableRef("dbo", "Customer")

    assert render_references(page, customer, [TO_CUSTOMER], {}) is page
