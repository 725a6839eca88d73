"""Type definitions for table comparison."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any, Literal, NamedTuple

type Row = Mapping[str, Any]
type Side = Literal["left", "right"]
type Status = Literal["same", "different", "left-only", "right-only"]
type ValueResolver = Callable[[Row, str], Any]


class TableRef(NamedTuple):
    """Reference to a table within one of the two data sources."""

    schema: str
    table: str
    database: str = ""

    @property
    def key(self) -> str:
        """Qualified table key used to address join indexes."""
        return f"{self.schema}.{self.table}"


class Relationship(NamedTuple):
    """Foreign key to primary key column pairing between two tables."""

    fk_schema: str
    fk_table: str
    fk_column: str
    pk_schema: str
    pk_table: str
    pk_column: str
    name: str = ""

    @property
    def fk_key(self) -> str:
        """Qualified key of the referencing ("many") table."""
        return f"{self.fk_schema}.{self.fk_table}"

    @property
    def pk_key(self) -> str:
        """Qualified key of the referenced ("one") table."""
        return f"{self.pk_schema}.{self.pk_table}"

    def is_fk_side(self, ref: TableRef) -> bool:
        """Whether the given table is the referencing side."""
        return self.fk_schema == ref.schema and self.fk_table == ref.table

    def is_pk_side(self, ref: TableRef) -> bool:
        """Whether the given table is the referenced side."""
        return self.pk_schema == ref.schema and self.pk_table == ref.table

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Relationship:
        """Build from the upper-case FK_/PK_ shape of the relationship API."""
        return cls(
            fk_schema=str(data.get("FK_SCHEMA") or ""),
            fk_table=str(data["FK_TABLE"]),
            fk_column=str(data["FK_COLUMN"]),
            pk_schema=str(data.get("PK_SCHEMA") or ""),
            pk_table=str(data["PK_TABLE"]),
            pk_column=str(data["PK_COLUMN"]),
            name=str(data.get("FK_NAME") or ""),
        )


class CombinedColumn(NamedTuple):
    """Virtual column concatenating several source columns."""

    name: str
    source_columns: tuple[str, ...]
    side: Side


class JoinedColumn(NamedTuple):
    """Virtual column looked up in a related table through a relationship."""

    name: str
    side: Side
    relationship: Relationship
    join_column: str


type VirtualColumn = CombinedColumn | JoinedColumn


class TablePage(NamedTuple):
    """A fetched page of rows together with its column list."""

    columns: tuple[str, ...]
    rows: tuple[Row, ...]
    total_rows: int = 0
    has_more: bool = False
    filtered_row_count: int | None = None


class NullRow(dict[str, Any]):
    """Synthetic padding row with every known column mapped to None."""

    @classmethod
    def of(cls, columns: Sequence[str]) -> NullRow:
        """Create a padding row for the given columns."""
        return cls.fromkeys(columns)

    def __repr__(self) -> str:
        """Mark padding rows in debug output."""
        return f"NullRow({list(self)!r})"


def is_null_row(row: Row | None) -> bool:
    """Whether the row is missing or a synthetic padding row."""
    return row is None or isinstance(row, NullRow)


class AlignedRows(NamedTuple):
    """Two positionally aligned row sequences of equal length."""

    left: list[Row]
    right: list[Row]


class ComparisonResult(NamedTuple):
    """Classification of a single aligned row pair."""

    status: Status
    left_row: Row | None = None
    right_row: Row | None = None
    diff_columns: tuple[str, ...] | None = None


class ValidationResult(NamedTuple):
    """Partition of virtual columns into usable and rejected entries."""

    valid: tuple[VirtualColumn, ...]
    invalid: tuple[VirtualColumn, ...]
