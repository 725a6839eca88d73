"""Resolution of combined and joined virtual columns."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

from tablecompare.normalize import as_text
from tablecompare.types import CombinedColumn, JoinedColumn, ValidationResult

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from tablecompare.index import JoinIndex
    from tablecompare.types import Relationship, Row, Side, TableRef, VirtualColumn

logger = getLogger(__name__)


def combine_values(row: Row, source_columns: Iterable[str]) -> str:
    """Join the non-empty source values of a row with single spaces."""
    values = (row.get(column) for column in source_columns)
    return " ".join(as_text(v) for v in values if v is not None and v != "")


def select_join_index(
    relationship: Relationship,
    join_indexes: Mapping[str, JoinIndex],
    table_ref: TableRef | None = None,
) -> JoinIndex | None:
    """Pick the index of the table on the other side of the relationship."""
    is_fk = table_ref is not None and relationship.is_fk_side(table_ref)
    is_pk = table_ref is not None and relationship.is_pk_side(table_ref)

    if is_pk and not is_fk:
        primary, alternative = relationship.fk_key, relationship.pk_key
    else:
        primary, alternative = relationship.pk_key, relationship.fk_key

    index = join_indexes.get(primary)
    if index is None:
        index = join_indexes.get(alternative)
    return index


def join_role(row: Row, relationship: Relationship) -> tuple[object, str] | None:
    """Return the lookup key value and the column to match on the other side.

    A row carrying neither a fk nor a pk value has no key to look up.
    """
    fk_value = row.get(relationship.fk_column)
    if fk_value is not None:
        return fk_value, relationship.pk_column

    pk_value = row.get(relationship.pk_column)
    if pk_value is not None:
        return pk_value, relationship.fk_column

    return None


def resolve_joined(
    row: Row,
    column: JoinedColumn,
    join_indexes: Mapping[str, JoinIndex],
    table_ref: TableRef | None = None,
) -> Any:  # noqa: ANN401
    """Look up the join column of the related row, or None."""
    index = select_join_index(column.relationship, join_indexes, table_ref)
    if index is None:
        return None

    role = join_role(row, column.relationship)
    if role is None:
        return None

    key, target_column = role
    related = index.lookup(target_column, key)
    if related is None:
        return None
    return related.get(column.join_column)


def resolve_value(
    row: Row,
    column: str,
    virtual_columns: Iterable[VirtualColumn] = (),
    join_indexes: Mapping[str, JoinIndex] | None = None,
    table_ref: TableRef | None = None,
) -> Any:  # noqa: ANN401
    """Compute the effective value of a plain, combined or joined column."""
    virtual = next((v for v in virtual_columns if v.name == column), None)

    match virtual:
        case CombinedColumn(source_columns=source_columns):
            return combine_values(row, source_columns)
        case JoinedColumn():
            return resolve_joined(row, virtual, join_indexes or {}, table_ref)
        case None:
            return row.get(column)


def validate_virtual_columns(
    virtual_columns: Iterable[VirtualColumn],
    available_columns: Iterable[str],
) -> ValidationResult:
    """Split virtual columns into those usable on a table and those rejected.

    Combined columns need all their sources in the table; no virtual column
    may reuse the name of an original column.
    """
    available = frozenset(available_columns)
    valid: list[VirtualColumn] = []
    invalid: list[VirtualColumn] = []

    for virtual in virtual_columns:
        if virtual.name in available:
            invalid.append(virtual)
        elif isinstance(virtual, CombinedColumn) and not available.issuperset(
            virtual.source_columns,
        ):
            invalid.append(virtual)
        else:
            valid.append(virtual)

    return ValidationResult(valid=tuple(valid), invalid=tuple(invalid))


def columns_for_side(
    columns: Iterable[str],
    virtual_columns: Iterable[VirtualColumn],
    side: Side,
) -> tuple[str, ...]:
    """Original columns followed by the side's virtual column names."""
    return (*columns, *(v.name for v in virtual_columns if v.side == side))


class Resolver:
    """Column value resolver bound to one side of a comparison."""

    def __init__(
        self,
        virtual_columns: Iterable[VirtualColumn] = (),
        join_indexes: Mapping[str, JoinIndex] | None = None,
        table_ref: TableRef | None = None,
        columns: Sequence[str] | None = None,
    ) -> None:
        """Bind virtual columns, join indexes and the current table.

        When the table's columns are given, invalid virtual columns are
        dropped so their names resolve as plain columns.
        """
        virtual_columns = tuple(virtual_columns)
        if columns is not None:
            validation = validate_virtual_columns(virtual_columns, columns)
            for rejected in validation.invalid:
                logger.warning("Ignoring invalid virtual column %r", rejected.name)
            virtual_columns = validation.valid

        self.virtual_columns = {v.name: v for v in virtual_columns}
        self.join_indexes = dict(join_indexes or {})
        self.table_ref = table_ref

    @classmethod
    def for_side(
        cls,
        side: Side,
        virtual_columns: Iterable[VirtualColumn] = (),
        columns: Sequence[str] | None = None,
        join_indexes: Mapping[str, JoinIndex] | None = None,
        table_ref: TableRef | None = None,
    ) -> Resolver:
        """Create a resolver for the virtual columns of one side."""
        return cls(
            (v for v in virtual_columns if v.side == side),
            join_indexes,
            table_ref,
            columns,
        )

    @property
    def names(self) -> tuple[str, ...]:
        """Names of the virtual columns this resolver computes."""
        return tuple(self.virtual_columns)

    def __call__(self, row: Row, column: str) -> Any:  # noqa: ANN401
        """Resolve the value of a column for a row."""
        virtual = self.virtual_columns.get(column)
        if virtual is None:
            return row.get(column)
        return resolve_value(
            row,
            column,
            (virtual,),
            self.join_indexes,
            self.table_ref,
        )


def plain_value(row: Row, column: str) -> Any:  # noqa: ANN401
    """Resolve a column without any virtual columns."""
    return row.get(column)


def materialize(rows: Iterable[Row], resolver: Resolver) -> list[dict[str, Any]]:
    """Copy rows with the resolver's virtual column values filled in."""
    names = resolver.names
    return [
        {**row, **{name: resolver(row, name) for name in names}}
        for row in rows
    ]
