"""Loading of comparison settings from TOML files."""

from __future__ import annotations

from logging import getLogger
from pathlib import Path
from tomllib import TOMLDecodeError, load
from typing import TYPE_CHECKING, Any, Literal, NotRequired, TypedDict

from tablecompare.columns import HIDDEN_COLUMN_PATTERNS, HIDDEN_COLUMNS
from tablecompare.index import DEFAULT_KEY_COLUMN
from tablecompare.references import DEFAULT_DISPLAY_COLUMNS
from tablecompare.types import CombinedColumn, JoinedColumn

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tablecompare.types import Relationship, Side, VirtualColumn

logger = getLogger(__name__)

CONFIG_FILE = Path("tablecompare.toml")

type SourceName = Literal["left", "right"]


class Source(TypedDict):
    """Connection settings of one data source."""

    url: str
    schema: NotRequired[str]


class Comparison(TypedDict):
    """Comparison defaults."""

    limit: int
    key_column: str
    display_columns: list[str]
    hidden_columns: list[str]
    hidden_column_patterns: list[str]


class VirtualColumnEntry(TypedDict):
    """Raw virtual column definition."""

    name: str
    side: Side
    sources: NotRequired[list[str]]
    relationship: NotRequired[str]
    join_column: NotRequired[str]


class Config(TypedDict):
    """Complete configuration with defaults applied."""

    sources: dict[str, Source]
    comparison: Comparison
    virtual_columns: list[VirtualColumnEntry]


def default_comparison() -> Comparison:
    """Comparison settings used when the file does not set them."""
    return {
        "limit": 100,
        "key_column": DEFAULT_KEY_COLUMN,
        "display_columns": list(DEFAULT_DISPLAY_COLUMNS),
        "hidden_columns": list(HIDDEN_COLUMNS),
        "hidden_column_patterns": list(HIDDEN_COLUMN_PATTERNS),
    }


def _string_list(value: object, key: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        msg = f"'{key}' must be a list of strings"
        raise ValueError(msg)
    return list(value)


def parse_comparison(data: dict[str, Any]) -> Comparison:
    """Validate the [comparison] table over the defaults."""
    comparison = default_comparison()

    if "limit" in data:
        limit = data["limit"]
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            msg = f"'comparison.limit' must be a positive integer, got {limit!r}"
            raise ValueError(msg)
        comparison["limit"] = limit

    if "key_column" in data:
        if not isinstance(data["key_column"], str) or not data["key_column"]:
            msg = "'comparison.key_column' must be a non-empty string"
            raise ValueError(msg)
        comparison["key_column"] = data["key_column"]

    for key in ("display_columns", "hidden_columns", "hidden_column_patterns"):
        if key in data:
            comparison[key] = _string_list(data[key], f"comparison.{key}")

    return comparison


def parse_sources(data: object) -> dict[str, Source]:
    """Validate the [sources.*] tables."""
    if not isinstance(data, dict):
        msg = "'sources' must be a table"
        raise ValueError(msg)

    sources: dict[str, Source] = {}
    for name, source in data.items():
        if not isinstance(source, dict) or not isinstance(source.get("url"), str):
            msg = f"'sources.{name}.url' must be a string"
            raise ValueError(msg)
        parsed: Source = {"url": source["url"]}
        if "schema" in source:
            if not isinstance(source["schema"], str):
                msg = f"'sources.{name}.schema' must be a string"
                raise ValueError(msg)
            parsed["schema"] = source["schema"]
        sources[name] = parsed
    return sources


def parse_virtual_column(entry: object, position: int) -> VirtualColumnEntry:
    """Validate one [[virtual_columns]] entry."""
    where = f"virtual_columns[{position}]"
    if not isinstance(entry, dict):
        msg = f"'{where}' must be a table"
        raise ValueError(msg)

    name, side = entry.get("name"), entry.get("side")
    if not isinstance(name, str) or not name:
        msg = f"'{where}.name' must be a non-empty string"
        raise ValueError(msg)
    if side not in {"left", "right"}:
        msg = f"'{where}.side' must be 'left' or 'right', got {side!r}"
        raise ValueError(msg)

    if "sources" in entry:
        sources = _string_list(entry["sources"], f"{where}.sources")
        return {"name": name, "side": side, "sources": sources}

    relationship, join_column = entry.get("relationship"), entry.get("join_column")
    if not isinstance(relationship, str) or not isinstance(join_column, str):
        msg = f"'{where}' needs either 'sources' or 'relationship' and 'join_column'"
        raise ValueError(msg)
    return {
        "name": name,
        "side": side,
        "relationship": relationship,
        "join_column": join_column,
    }


def load_config(path: Path = CONFIG_FILE) -> Config:
    """Load configuration from a TOML file."""
    try:
        with path.open("rb") as f:
            data = load(f)
    except TOMLDecodeError as err:
        msg = f"Invalid configuration file {path}: {err}"
        raise ValueError(msg) from err

    comparison = data.get("comparison", {})
    if not isinstance(comparison, dict):
        msg = "'comparison' must be a table"
        raise ValueError(msg)

    entries = data.get("virtual_columns", [])
    if not isinstance(entries, list):
        msg = "'virtual_columns' must be an array of tables"
        raise ValueError(msg)

    return {
        "sources": parse_sources(data.get("sources", {})),
        "comparison": parse_comparison(comparison),
        "virtual_columns": [
            parse_virtual_column(entry, position)
            for position, entry in enumerate(entries)
        ],
    }


def get_source(config: Config, name: SourceName) -> Source:
    """Get a data source by name from the configuration."""
    try:
        return config["sources"][name]
    except KeyError as err:
        msg = f"Unknown source: {name}"
        raise ValueError(msg) from err


def virtual_columns_from_config(
    config: Config,
    relationships: Iterable[Relationship],
    side: Side | None = None,
) -> list[VirtualColumn]:
    """Build virtual columns, resolving relationship names.

    With a side given only that side's entries are built, so each side can
    resolve names against the relationships of its own database.
    """
    by_name = {relationship.name: relationship for relationship in relationships}
    columns: list[VirtualColumn] = []

    for entry in config["virtual_columns"]:
        if side is not None and entry["side"] != side:
            continue
        if "sources" in entry:
            columns.append(
                CombinedColumn(entry["name"], tuple(entry["sources"]), entry["side"]),
            )
            continue

        relationship = by_name.get(entry["relationship"])
        if relationship is None:
            logger.warning(
                "Skipping virtual column %r: unknown relationship %r",
                entry["name"],
                entry["relationship"],
            )
            continue
        columns.append(
            JoinedColumn(
                entry["name"],
                entry["side"],
                relationship,
                entry["join_column"],
            ),
        )

    return columns
