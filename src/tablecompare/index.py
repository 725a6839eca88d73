"""Keyed lookup index over the rows of a related table page."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from tablecompare.normalize import as_text, extract_display_id

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping

    from tablecompare.types import Row, TablePage

logger = getLogger(__name__)

DEFAULT_KEY_COLUMN = "Oid"


def column_key(column: str, value: object) -> str:
    """Composite lookup key for a column value."""
    return f"{column}:{as_text(value).strip()}"


class JoinIndex:
    """Index for point lookups of related rows by key or column value."""

    def __init__(self) -> None:
        """Initialize an empty index."""
        self._entries: dict[str, Row] = {}
        self._rows: list[Row] = []
        self.collisions = 0

    @classmethod
    def build(
        cls,
        rows: Iterable[Row],
        key_column: str = DEFAULT_KEY_COLUMN,
    ) -> JoinIndex:
        """Index every row under its key column and each column:value pair."""
        index = cls()
        for row in rows:
            index.add(row, key_column)
        if index.collisions:
            logger.debug(
                "Join index kept first row for %d duplicate column keys",
                index.collisions,
            )
        return index

    def add(self, row: Row, key_column: str = DEFAULT_KEY_COLUMN) -> None:
        """Add a row; composite keys keep the first row that claimed them."""
        indexed = False

        if key := as_text(row.get(key_column)).strip():
            self._entries[key] = row
            indexed = True

        for column, value in row.items():
            if value is None or value == "":
                continue
            composite = column_key(column, value)
            if composite in self._entries:
                self.collisions += 1
                continue
            self._entries[composite] = row
            indexed = True

        if indexed:
            self._rows.append(row)

    def get(self, key: str) -> Row | None:
        """Return the row stored under the exact key."""
        return self._entries.get(key)

    def scan(self, column: str, *candidates: str) -> Row | None:
        """Return the first row whose column matches any candidate string."""
        for row in self._rows:
            value = row.get(column)
            if value is None:
                continue
            text = as_text(value)
            if text in candidates or text.strip() in candidates:
                return row
        return None

    def lookup(self, target_column: str, raw_value: object) -> Row | None:
        """Find the related row for a key that may be a display value.

        Tries the extracted id and then the raw value, each first as a
        ``column:value`` key and then as a bare key, before falling back to a
        linear scan of the target column.
        """
        extracted = as_text(extract_display_id(raw_value)).strip()
        original = as_text(raw_value).strip()

        keys = [f"{target_column}:{extracted}", extracted]
        if original != extracted:
            keys += [f"{target_column}:{original}", original]

        for key in keys:
            if (row := self._entries.get(key)) is not None:
                return row

        return self.scan(target_column, extracted, original)

    def __contains__(self, key: object) -> bool:
        """Whether the exact key is indexed."""
        return key in self._entries

    def __len__(self) -> int:
        """Number of distinct indexed rows."""
        return len(self._rows)

    def __iter__(self) -> Iterator[Row]:
        """Iterate over distinct indexed rows in page order."""
        return iter(self._rows)


def build_join_indexes(
    pages: Mapping[str, TablePage],
    key_column: str = DEFAULT_KEY_COLUMN,
) -> dict[str, JoinIndex]:
    """Build one join index per table key."""
    return {
        table_key: JoinIndex.build(page.rows, key_column)
        for table_key, page in pages.items()
    }
