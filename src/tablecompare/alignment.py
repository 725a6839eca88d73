"""Positional alignment of two independently fetched row sets."""

from __future__ import annotations

from collections import defaultdict
from itertools import chain
from logging import getLogger
from typing import TYPE_CHECKING

from tablecompare.normalize import as_text, collation_key, stable_dumps
from tablecompare.types import AlignedRows, NullRow
from tablecompare.virtual import plain_value

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from tablecompare.types import Row, ValueResolver

logger = getLogger(__name__)

KEY_DELIMITER = "|"


def key_part(value: object) -> str:
    """Sort key component for a single resolved value."""
    if value is None:
        return "null"
    if isinstance(value, str):
        return value.lower()
    if isinstance(value, (dict, list, tuple)):
        return stable_dumps(value)
    return as_text(value)


def sort_key(
    row: Row,
    columns: Sequence[str],
    resolver: ValueResolver = plain_value,
) -> str:
    """Composite key of the row's comparison column values."""
    return KEY_DELIMITER.join(key_part(resolver(row, column)) for column in columns)


def bucket_rows(
    rows: Iterable[Row],
    columns: Sequence[str],
    resolver: ValueResolver = plain_value,
) -> dict[str, list[Row]]:
    """Group rows by sort key, keeping fetch order within each bucket."""
    buckets: defaultdict[str, list[Row]] = defaultdict(list)
    for row in rows:
        buckets[sort_key(row, columns, resolver)].append(row)
    return buckets


def known_columns(rows: Sequence[Row], columns: Sequence[str]) -> tuple[str, ...]:
    """Columns for padding rows: the union of row keys, else the table columns."""
    if not rows:
        return tuple(columns)
    return tuple(dict.fromkeys(chain.from_iterable(row.keys() for row in rows)))


def ordered_keys(*keys: Iterable[str]) -> list[str]:
    """Union of bucket keys in collation order, ties broken by the raw key."""
    return sorted(
        frozenset(chain.from_iterable(keys)),
        key=lambda key: (collation_key(key), key),
    )


def pad(rows: Sequence[Row], length: int, columns: Sequence[str]) -> list[Row]:
    """Extend rows with padding rows up to the given length."""
    return [*rows, *(NullRow.of(columns) for _ in range(length - len(rows)))]


def align_rows(  # noqa: PLR0913
    left_rows: Sequence[Row],
    right_rows: Sequence[Row],
    comparison_columns: Sequence[str],
    left_columns: Sequence[str] = (),
    right_columns: Sequence[str] = (),
    *,
    left_resolver: ValueResolver = plain_value,
    right_resolver: ValueResolver = plain_value,
) -> AlignedRows:
    """Align two row sets so rows with equal comparison keys share an index.

    Without comparison columns both sides keep their order and the shorter
    one is padded. Otherwise rows are bucketed by key, buckets are emitted in
    collation order and each bucket pairs rows positionally, padding the side
    with fewer occurrences.
    """
    left_padding = known_columns(left_rows, left_columns)
    right_padding = known_columns(right_rows, right_columns)

    if not comparison_columns:
        length = max(len(left_rows), len(right_rows))
        return AlignedRows(
            left=pad(left_rows, length, left_padding),
            right=pad(right_rows, length, right_padding),
        )

    left_buckets = bucket_rows(left_rows, comparison_columns, left_resolver)
    right_buckets = bucket_rows(right_rows, comparison_columns, right_resolver)
    keys = ordered_keys(left_buckets, right_buckets)
    logger.debug(
        "Aligning %d left and %d right rows over %d keys",
        len(left_rows),
        len(right_rows),
        len(keys),
    )

    aligned = AlignedRows(left=[], right=[])
    for key in keys:
        left_bucket = left_buckets.get(key, [])
        right_bucket = right_buckets.get(key, [])
        length = max(len(left_bucket), len(right_bucket))
        aligned.left.extend(pad(left_bucket, length, left_padding))
        aligned.right.extend(pad(right_bucket, length, right_padding))

    return aligned
