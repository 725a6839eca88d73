"""Per-row, per-column classification of aligned row pairs."""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from itertools import zip_longest
from typing import TYPE_CHECKING, NamedTuple

from tablecompare.normalize import stable_dumps
from tablecompare.types import ComparisonResult, is_null_row
from tablecompare.virtual import plain_value

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from tablecompare.types import Row, ValueResolver


class DiffSummary(NamedTuple):
    """Counts of aligned pairs by status."""

    same: int = 0
    different: int = 0
    left_only: int = 0
    right_only: int = 0

    @property
    def differences(self) -> int:
        """Pairs that are not identical."""
        return self.different + self.left_only + self.right_only

    @property
    def total(self) -> int:
        """All aligned pairs."""
        return self.same + self.differences


def values_equal(left: object, right: object) -> bool:
    """Structural equality of two resolved cell values.

    None only equals None, booleans never equal numbers and containers are
    compared by their key-order independent serialization.
    """
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    containers = (Mapping, list, tuple, set, frozenset)
    if isinstance(left, containers) or isinstance(right, containers):
        return stable_dumps(left) == stable_dumps(right)
    return left == right


def compare_pair(
    left: Row | None,
    right: Row | None,
    columns: Sequence[str],
    *,
    left_resolver: ValueResolver = plain_value,
    right_resolver: ValueResolver = plain_value,
) -> ComparisonResult:
    """Classify one aligned pair."""
    left_missing, right_missing = is_null_row(left), is_null_row(right)

    if left_missing and right_missing:
        return ComparisonResult(status="same")
    if left_missing:
        return ComparisonResult(status="right-only", right_row=right)
    if right_missing:
        return ComparisonResult(status="left-only", left_row=left)

    diff_columns = tuple(
        column
        for column in columns
        if not values_equal(left_resolver(left, column), right_resolver(right, column))
    )
    return ComparisonResult(
        status="different" if diff_columns else "same",
        left_row=left,
        right_row=right,
        diff_columns=diff_columns or None,
    )


def diff_rows(
    aligned_left: Sequence[Row],
    aligned_right: Sequence[Row],
    columns: Sequence[str],
    *,
    left_resolver: ValueResolver = plain_value,
    right_resolver: ValueResolver = plain_value,
) -> list[ComparisonResult]:
    """Classify every aligned index, walking to the longer of the two sides."""
    return [
        compare_pair(
            left,
            right,
            columns,
            left_resolver=left_resolver,
            right_resolver=right_resolver,
        )
        for left, right in zip_longest(aligned_left, aligned_right)
    ]


def summarize(results: Iterable[ComparisonResult]) -> DiffSummary:
    """Count results by status."""
    counts = Counter(result.status for result in results)
    return DiffSummary(
        same=counts["same"],
        different=counts["different"],
        left_only=counts["left-only"],
        right_only=counts["right-only"],
    )
