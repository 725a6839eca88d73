"""Tests for text normalization and value stringification."""

from datetime import date
from decimal import Decimal

import pytest

from tablecompare.normalize import (
    as_text,
    collation_key,
    collapse_newlines,
    display_portion,
    encoder,
    extract_display_id,
    normalize_text,
    stable_dumps,
)


def test_normalize_text_strips_diacritics_and_case() -> None:
    """Vietnamese marks, case and extra whitespace are removed."""
    assert normalize_text("  Nguyễn   Văn\tĐức ") == "nguyen van duc"


def test_normalize_text_non_string_is_empty() -> None:
    """None and numbers normalize to an empty string."""
    assert normalize_text(None) == ""
    assert normalize_text(42) == ""


def test_as_text_scalars() -> None:
    """Scalars stringify consistently."""
    assert as_text(None) == ""
    assert as_text(True) == "true"  # noqa: FBT003
    assert as_text(3.0) == "3"
    assert as_text(2.5) == "2.5"
    assert as_text(date(2024, 1, 2)) == "2024-01-02"
    assert as_text(b"\x01\xff") == "01ff"


def test_as_text_containers_are_key_order_independent() -> None:
    """Mappings serialize with sorted keys."""
    assert as_text({"b": 1, "a": 2}) == as_text({"a": 2, "b": 1})
    assert stable_dumps({"b": 1, "a": 2}) == '{"a": 2, "b": 1}'


def test_encoder_handles_unencodable_values() -> None:
    """Dates, decimals and sets become JSON friendly values."""
    assert encoder(date(2024, 5, 1)) == "2024-05-01"
    assert encoder(Decimal("1.50")) == "1.50"
    assert encoder({"b", "a"}) == ["a", "b"]


def test_extract_display_id() -> None:
    """The id of a display value is extracted, other values pass through."""
    assert extract_display_id("Nguyen Van A\n(ID: 42)") == "42"
    assert extract_display_id("Nguyen Van A (ID:  7 )") == "7"
    assert extract_display_id("plain") == "plain"
    assert extract_display_id(7) == 7


def test_display_portion_and_collapse() -> None:
    """Display portion is the first line, collapsing joins lines."""
    assert display_portion("An\n(ID: 2)") == "An"
    assert display_portion("single") == "single"
    assert collapse_newlines("An\r\n(ID: 2)\n") == "An (ID: 2)"


def test_collation_key_is_numeric_aware() -> None:
    """Digit runs compare by value rather than character by character."""
    names = ["item10", "Item2", "item1"]
    assert sorted(names, key=collation_key) == ["item1", "Item2", "item10"]


def test_collation_key_ignores_accents_and_case() -> None:
    """Accented and plain spellings collate equally."""
    assert collation_key("Ánh") == collation_key("anh")
    names = ["Đức", "bình", "Anh"]
    assert sorted(names, key=collation_key) == ["Anh", "bình", "Đức"]


def test_collation_key_orders_punctuation_digits_letters() -> None:
    """Punctuation sorts first, then digits, then letters."""
    assert sorted(["b", "1", "-"], key=collation_key) == ["-", "1", "b"]


@pytest.mark.parametrize(
    "text",
    [
        "Nguyễn Văn Đức",
        "  đường   Trần\tHưng Đạo ",
        "ĐẶNG THỊ Ả",
        "Sales\n(ID: 42)",
        "ẹ́",
        "İstanbul ß",
        "",
    ],
)
def test_normalize_text_is_idempotent(text: str) -> None:
    """Normalizing twice gives the same text as normalizing once."""
    once = normalize_text(text)

    assert normalize_text(once) == once
