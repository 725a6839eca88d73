"""Tests for the command line interface."""

import json
from pathlib import Path

import pytest

from tablecompare.cli import (
    compare,
    options,
    parse_columns,
    parse_filters,
    quality,
    relationships,
    show,
    split_filters,
    tables,
)
from tablecompare.config import load_config


@pytest.fixture(name="config")
def create_config(
    database_dir: Path,
    left_database: Path,
    right_database: Path,
) -> Path:
    """Configuration pointing at the two company databases."""
    path = database_dir / "tablecompare.toml"
    path.write_text(
        f"""
[sources.left]
url = "sqlite:///{left_database}"

[sources.right]
url = "sqlite:///{right_database}"

[[virtual_columns]]
name = "DepartmentName"
side = "left"
relationship = "FK_Employee_Department"
join_column = "Name"
""",
        encoding="utf-8",
    )
    return path


def test_parse_filters() -> None:
    """Filters split on the first equals sign."""
    assert parse_filters(["Name=An||Binh", " City =a=b"]) == {
        "Name": "An||Binh",
        "City": "a=b",
    }
    assert parse_filters(None) == {}


def test_parse_filters_rejects_missing_column() -> None:
    """Filters need a column and an expression."""
    with pytest.raises(ValueError, match="COLUMN=EXPRESSION"):
        parse_filters(["=x"])
    with pytest.raises(ValueError, match="COLUMN=EXPRESSION"):
        parse_filters(["Name"])


def test_parse_columns() -> None:
    """Column lists are comma separated."""
    assert parse_columns(" Name, ,Oid ") == ("Name", "Oid")
    assert parse_columns("") == ()


def test_missing_config_exits(database_dir: Path) -> None:
    """A missing configuration file ends with status 1."""
    with pytest.raises(SystemExit) as exc_info:
        tables("left", config=database_dir / "missing.toml")

    assert exc_info.value.code == 1


def test_tables(config: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Tables of a source are printed one per line."""
    tables("left", config=config)

    out = capsys.readouterr().out
    assert out.splitlines()[:2] == ["Department", "Employee"]


def test_relationships(config: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Relationship tables name the referenced table."""
    relationships("left", "Employee", config=config)

    assert "Department.Oid" in capsys.readouterr().out


def test_show_renders_references(
    config: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Reference columns show the related display value."""
    show("left", "Employee", fmt="json", config=config)

    out = capsys.readouterr().out
    assert "Sales\\n(ID: d1)" in out


def test_show_unknown_table_exits(config: Path) -> None:
    """Database errors end with status 1."""
    with pytest.raises(SystemExit) as exc_info:
        show("left", "Nope", config=config)

    assert exc_info.value.code == 1


def test_options(config: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Reference columns offer picker options."""
    options("left", "Employee", "DepartmentId", config=config)

    out = capsys.readouterr().out
    assert "Sales (ID: d1)" in out
    assert "Kế toán (ID: d2)" in out


def test_quality(config: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """The quality report counts the table's rows."""
    quality("left", "Department", config=config)

    assert "Duplicate groups" in capsys.readouterr().out


def test_compare_json(config: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Rows pair by position and joined columns are resolved."""
    compare("Employee", fmt="json", config=config)

    data = json.loads(capsys.readouterr().out)
    assert [r["status"] for r in data["results"]] == ["same", "different", "left-only"]
    assert data["results"][0]["left"]["DepartmentName"] == "Sales"
    assert "DepartmentId" in data["results"][1]["diff_columns"]


def test_compare_table(config: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """The terminal summary is printed."""
    compare("Employee", config=config)

    assert "Comparison of Employee" in capsys.readouterr().out


def test_split_filters(database_dir: Path) -> None:
    """Virtual column filters apply only to the side defining them."""
    path = database_dir / "split.toml"
    path.write_text(
        """
[[virtual_columns]]
name = "FullName"
side = "left"
sources = ["First", "Last"]
""",
        encoding="utf-8",
    )
    config = load_config(path)
    filters = {"Name": "An", "FullName": "An Nguyen"}

    assert split_filters(filters, config, "left") == (
        {"Name": "An"},
        {"FullName": "An Nguyen"},
    )
    assert split_filters(filters, config, "right") == ({"Name": "An"}, {})


def test_compare_filters_on_virtual_column(
    config: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """A filter on a joined column keeps the matching rows of its side."""
    compare(
        "Employee",
        columns="Oid",
        filters=["DepartmentName=Sales"],
        fmt="json",
        config=config,
    )

    data = json.loads(capsys.readouterr().out)
    statuses = [r["status"] for r in data["results"]]
    assert statuses == ["same", "right-only", "left-only"]
    assert {r["left"]["Oid"] for r in data["results"] if r["left"]} == {"e1", "e3"}
    assert all(
        r["left"]["DepartmentName"] == "Sales" for r in data["results"] if r["left"]
    )
