"""Grouping and ordering of foreign key relationships."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from tablecompare.normalize import collation_key
from tablecompare.types import JoinedColumn, TableRef

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tablecompare.types import Relationship, Side, VirtualColumn


def categorize_relationships(
    relationships: Iterable[Relationship],
    ref: TableRef,
) -> tuple[list[Relationship], list[Relationship]]:
    """Split relationships into those leaving and those entering the table."""
    outgoing: list[Relationship] = []
    incoming: list[Relationship] = []
    for relationship in relationships:
        if relationship.is_fk_side(ref):
            outgoing.append(relationship)
        elif relationship.is_pk_side(ref):
            incoming.append(relationship)
    return outgoing, incoming


def group_by_table(
    relationships: Iterable[Relationship],
    *,
    outgoing: bool = True,
) -> dict[str, list[Relationship]]:
    """Group relationships by the table on their far side."""
    groups: defaultdict[str, list[Relationship]] = defaultdict(list)
    for relationship in relationships:
        key = relationship.pk_key if outgoing else relationship.fk_key
        groups[key].append(relationship)
    return dict(groups)


def sort_relationships(relationships: Iterable[Relationship]) -> list[Relationship]:
    """Order relationships by referenced table, then fk column."""
    return sorted(
        relationships,
        key=lambda rel: (
            collation_key(rel.pk_table),
            rel.pk_table,
            collation_key(rel.fk_column),
            rel.fk_column,
        ),
    )


def joined_table(column: JoinedColumn, current: TableRef) -> TableRef:
    """The table a joined column reads its values from."""
    rel = column.relationship
    if rel.is_fk_side(current):
        return TableRef(rel.pk_schema, rel.pk_table, current.database)
    return TableRef(rel.fk_schema, rel.fk_table, current.database)


def related_tables(
    virtual_columns: Iterable[VirtualColumn],
    left: TableRef,
    right: TableRef,
) -> list[tuple[Side, TableRef]]:
    """Tables each side's joined columns read from, besides its own table."""
    tables: dict[tuple[Side, str], TableRef] = {}
    for column in virtual_columns:
        if not isinstance(column, JoinedColumn):
            continue
        current = left if column.side == "left" else right
        table = joined_table(column, current)
        if table.key != current.key:
            tables.setdefault((column.side, table.key), table)
    return [(side, table) for (side, _), table in tables.items()]
