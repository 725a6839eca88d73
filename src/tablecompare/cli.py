"""Command line interface for table comparison."""

import logging
import sys
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from json import dumps
from pathlib import Path
from typing import Annotated, Any, Literal

from cyclopts import App, Parameter
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from tablecompare.columns import visible_columns
from tablecompare.config import (
    CONFIG_FILE,
    Config,
    SourceName,
    get_source,
    load_config,
    virtual_columns_from_config,
)
from tablecompare.filters import (
    RelationshipContext,
    chunk_size_for,
    column_options,
    paginate_filtered,
)
from tablecompare.main import (
    TableComparison,
    TableInput,
    compare_tables,
    comparison_to_html,
    comparison_to_json,
    comparison_to_summary,
    report_columns,
)
from tablecompare.normalize import as_text, encoder
from tablecompare.quality import analyze_data_quality
from tablecompare.references import render_references
from tablecompare.relationships import (
    categorize_relationships,
    related_tables,
    sort_relationships,
)
from tablecompare.source import (
    create_source_engine,
    fetch_page,
    fetch_related_pages,
    fetch_relationships,
    fetch_table,
    iter_pages,
    list_tables,
    table_ref,
)
from tablecompare.types import Relationship, TablePage, TableRef, is_null_row

app = App(help="Compare tables across two databases")

type Format = Literal["table", "json", "html"]

ConfigOption = Annotated[Path, Parameter(name=["--config", "-c"])]
FilterOption = Annotated[list[str] | None, Parameter(name=["--filter", "-f"])]

console = Console()
err_console = Console(stderr=True)

MAX_CELL_WIDTH = 40


def print_error(message: str) -> None:
    """Print error message to stderr."""
    err_console.print(f"[bold red]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print success message to stderr."""
    err_console.print(f"[bold green]✓[/] {message}")


def print_info(message: str) -> None:
    """Print info message to stderr."""
    err_console.print(f"[bold blue]i[/] {message}")


def configure_logging(*, verbose: bool) -> None:
    """Route log records through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@contextmanager
def reported_errors() -> Iterator[None]:
    """Turn configuration and database errors into a status 1 exit."""
    try:
        yield
    except (ValueError, SQLAlchemyError) as e:
        print_error(str(e))
        sys.exit(1)


def setup(config_path: Path, *, verbose: bool) -> Config:
    """Configure logging and load the configuration file."""
    configure_logging(verbose=verbose)
    if not config_path.exists():
        print_error(f"Configuration file does not exist: {config_path}")
        sys.exit(1)
    with reported_errors():
        return load_config(config_path)


def connect(config: Config, source: SourceName, table: str) -> tuple[Engine, TableRef]:
    """Engine and table reference for a configured source."""
    settings = get_source(config, source)
    engine = create_source_engine(settings["url"])
    return engine, table_ref(engine, table, settings.get("schema"))


def parse_filters(expressions: Iterable[str] | None) -> dict[str, str]:
    """Parse COLUMN=EXPRESSION arguments."""
    filters: dict[str, str] = {}
    for expression in expressions or ():
        column, separator, value = expression.partition("=")
        if not separator or not column.strip():
            msg = f"Filter must look like COLUMN=EXPRESSION, got {expression!r}"
            raise ValueError(msg)
        filters[column.strip()] = value
    return filters


def parse_columns(columns: str) -> tuple[str, ...]:
    """Split a comma separated column list."""
    return tuple(column.strip() for column in columns.split(",") if column.strip())


def split_filters(
    filters: Mapping[str, str],
    config: Config,
    side: SourceName,
) -> tuple[dict[str, str], dict[str, str]]:
    """Filters on stored columns and filters on the side's virtual columns.

    Virtual column filters run after materialization. Filters on another
    side's virtual columns do not apply to this side.
    """
    entries = config["virtual_columns"]
    virtual = {entry["name"] for entry in entries}
    own = {entry["name"] for entry in entries if entry["side"] == side}
    stored = {c: e for c, e in filters.items() if c not in virtual}
    return stored, {c: e for c, e in filters.items() if c in own}


def referenced_pages(
    engine: Engine,
    ref: TableRef,
    relationships: Iterable[Relationship],
) -> dict[str, TablePage]:
    """Whole tables referenced by the table's outgoing relationships."""
    outgoing, _ = categorize_relationships(relationships, ref)
    refs = (TableRef(rel.pk_schema, rel.pk_table, ref.database) for rel in outgoing)
    return fetch_related_pages(engine, refs)


def load_rendered_page(  # noqa: PLR0913
    engine: Engine,
    ref: TableRef,
    config: Config,
    filters: Mapping[str, str],
    limit: int,
    offset: int,
) -> tuple[TablePage, list[Relationship]]:
    """Fetch a page with reference cells rendered, filtering when asked."""
    settings = config["comparison"]
    relationships = fetch_relationships(engine, ref)
    related = referenced_pages(engine, ref, relationships)

    def render(page: TablePage) -> TablePage:
        return render_references(
            page,
            ref,
            relationships,
            related,
            settings["display_columns"],
            settings["key_column"],
        )

    if not filters:
        return render(fetch_page(engine, ref, limit, offset)), relationships

    chunks = (render(chunk) for chunk in iter_pages(engine, ref, chunk_size_for(limit)))
    context = RelationshipContext(tuple(relationships), include_references=True)
    return paginate_filtered(chunks, filters, context, limit, offset), relationships


def display_columns(page: TablePage, config: Config) -> tuple[str, ...]:
    """Page columns without the configured hidden ones."""
    settings = config["comparison"]
    return visible_columns(
        page.columns,
        settings["hidden_columns"],
        settings["hidden_column_patterns"],
    )


def cell(value: object) -> str:
    """Terminal representation of a cell value."""
    if value is None:
        return "[dim]null[/]"
    text = as_text(value)
    if len(text) > MAX_CELL_WIDTH:
        text = f"{text[: MAX_CELL_WIDTH - 1]}…"
    return escape(text)


def format_page_table(title: str, page: TablePage, columns: Iterable[str]) -> None:
    """Format a page of rows as a rich table."""
    columns = tuple(columns)
    table = Table(title=title)
    for column in columns:
        table.add_column(column, overflow="fold")
    for row in page.rows:
        table.add_row(*(cell(row.get(column)) for column in columns))
    console.print(table)


def format_relationship_table(
    title: str,
    relationships: Iterable[Relationship],
) -> None:
    """Format relationships as a rich table."""
    table = Table(title=title)
    table.add_column("Name", style="bold cyan")
    table.add_column("Column")
    table.add_column("References")
    for rel in sort_relationships(relationships):
        table.add_row(
            rel.name,
            f"{rel.fk_table}.{rel.fk_column}",
            f"{rel.pk_table}.{rel.pk_column}",
        )
    console.print(table)


def format_summary_table(data: dict[str, Any]) -> None:
    """Format comparison counts as a rich table."""
    table = Table(title=f"Comparison of {data['name']}")
    table.add_column("Same", style="bold green")
    table.add_column("Different", style="bold yellow")
    table.add_column("Left only", style="bold red")
    table.add_column("Right only", style="bold blue")
    table.add_column("Total")
    table.add_row(
        str(data["same"]),
        str(data["different"]),
        str(data["left_only"]),
        str(data["right_only"]),
        str(data["total"]),
    )
    console.print(table)


def format_comparison_table(comparison: TableComparison) -> None:
    """Format differing pairs side by side as a rich table."""
    differences = [r for r in comparison.results if r.status != "same"]
    if not differences:
        console.print("No differences found between tables.")
        return

    columns = report_columns(comparison)
    table = Table(title=f"Differences in {comparison.name}")
    table.add_column("Status", style="bold")
    for column in columns:
        table.add_column(column, overflow="fold")

    for result in differences:
        changed = result.diff_columns or ()
        left = None if is_null_row(result.left_row) else result.left_row
        right = None if is_null_row(result.right_row) else result.right_row
        cells: list[str] = []
        for column in columns:
            left_cell = "" if left is None else cell(left.get(column))
            right_cell = (
                "" if right is None else cell(comparison.right_value(right, column))
            )
            if left is None:
                cells.append(f"[green]{right_cell}[/]")
            elif right is None:
                cells.append(f"[red]{left_cell}[/]")
            elif column in changed:
                cells.append(f"[red]{left_cell}[/] → [green]{right_cell}[/]")
            else:
                cells.append(left_cell)
        table.add_row(result.status, *cells)

    console.print(table)


@app.command
def tables(
    source: SourceName,
    *,
    config: ConfigOption = CONFIG_FILE,
    verbose: bool = False,
) -> None:
    """List the tables of a source."""
    settings = setup(config, verbose=verbose)
    with reported_errors():
        source_settings = get_source(settings, source)
        engine = create_source_engine(source_settings["url"])
        names = list_tables(engine, source_settings.get("schema"))

    for name in names:
        console.print(name)
    print_success(f"{len(names)} tables in {source}")


@app.command
def relationships(
    source: SourceName,
    table: str,
    *,
    config: ConfigOption = CONFIG_FILE,
    verbose: bool = False,
) -> None:
    """List the foreign keys leaving and entering a table."""
    settings = setup(config, verbose=verbose)
    with reported_errors():
        engine, ref = connect(settings, source, table)
        found = fetch_relationships(engine, ref)

    outgoing, incoming = categorize_relationships(found, ref)
    format_relationship_table(f"References from {ref.table}", outgoing)
    format_relationship_table(f"References to {ref.table}", incoming)


@app.command
def show(  # noqa: PLR0913
    source: SourceName,
    table: str,
    *,
    filters: FilterOption = None,
    limit: int | None = None,
    offset: int = 0,
    fmt: Literal["table", "json"] = "table",
    config: ConfigOption = CONFIG_FILE,
    verbose: bool = False,
) -> None:
    """Show a page of a table, optionally filtered."""
    settings = setup(config, verbose=verbose)
    with reported_errors():
        engine, ref = connect(settings, source, table)
        page, _ = load_rendered_page(
            engine,
            ref,
            settings,
            parse_filters(filters),
            limit or settings["comparison"]["limit"],
            offset,
        )

    if fmt == "json":
        sys.stdout.write(dumps(page._asdict(), default=encoder, ensure_ascii=False))
        return

    format_page_table(ref.table, page, display_columns(page, settings))
    matched = page.filtered_row_count
    if matched is not None:
        print_info(f"{matched} of {page.total_rows} rows match")
    else:
        print_info(f"{len(page.rows)} of {page.total_rows} rows")


@app.command
def options(
    source: SourceName,
    table: str,
    column: str,
    *,
    config: ConfigOption = CONFIG_FILE,
    verbose: bool = False,
) -> None:
    """List the distinct filter options of a column."""
    settings = setup(config, verbose=verbose)
    with reported_errors():
        engine, ref = connect(settings, source, table)
        found = fetch_relationships(engine, ref)
        page = render_references(
            fetch_table(engine, ref),
            ref,
            found,
            referenced_pages(engine, ref, found),
            settings["comparison"]["display_columns"],
            settings["comparison"]["key_column"],
        )

    context = RelationshipContext(tuple(found), include_references=True)
    for option in column_options(page.rows, column, context):
        console.print(option, markup=False)


@app.command
def quality(
    source: SourceName,
    table: str,
    *,
    name_columns: list[str] | None = None,
    config: ConfigOption = CONFIG_FILE,
    verbose: bool = False,
) -> None:
    """Report duplicate rows, duplicate names and single-valued columns."""
    settings = setup(config, verbose=verbose)
    with reported_errors():
        engine, ref = connect(settings, source, table)
        page = fetch_table(engine, ref)

    columns = display_columns(page, settings)
    summary = analyze_data_quality(page.rows, columns, name_columns or ("Oid",))

    report = Table(title=f"Data quality of {ref.table}")
    report.add_column("Check", style="bold cyan")
    report.add_column("Result")
    report.add_row("Rows", str(len(page.rows)))
    report.add_row("Duplicate groups", str(len(summary.duplicate_groups)))
    report.add_row("Duplicate rows", str(len(summary.duplicate_indices)))
    report.add_row("Duplicate names", str(len(summary.name_duplicate_groups)))
    report.add_row("Redundant columns", ", ".join(summary.redundant_columns) or "-")
    console.print(report)

    for group in summary.name_duplicate_groups:
        print_info(
            f"{group.column} {group.display_value!r} "
            f"appears {len(group.indices)} times",
        )


@app.command
def compare(  # noqa: PLR0913
    left_table: str,
    right_table: str | None = None,
    *,
    columns: str = "",
    filters: FilterOption = None,
    limit: int | None = None,
    fmt: Format = "table",
    config: ConfigOption = CONFIG_FILE,
    verbose: bool = False,
) -> None:
    """Compare a table of the left source with a table of the right source."""
    settings = setup(config, verbose=verbose)
    limit = limit or settings["comparison"]["limit"]
    key_column = settings["comparison"]["key_column"]

    with (
        reported_errors(),
        Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=err_console,
        ) as progress,
    ):
        task = progress.add_task("Loading tables...", total=None)
        row_filters = parse_filters(filters)
        left_engine, left_ref = connect(settings, "left", left_table)
        right_engine, right_ref = connect(settings, "right", right_table or left_table)

        left_stored, left_virtual = split_filters(row_filters, settings, "left")
        right_stored, right_virtual = split_filters(row_filters, settings, "right")

        left_page, left_relationships = load_rendered_page(
            left_engine, left_ref, settings, left_stored, limit, 0,
        )
        right_page, right_relationships = load_rendered_page(
            right_engine, right_ref, settings, right_stored, limit, 0,
        )
        virtual_columns = [
            *virtual_columns_from_config(settings, left_relationships, "left"),
            *virtual_columns_from_config(settings, right_relationships, "right"),
        ]

        progress.update(task, description="Loading related tables...")
        join_refs: dict[str, list[TableRef]] = {"left": [], "right": []}
        for side, ref in related_tables(virtual_columns, left_ref, right_ref):
            join_refs[side].append(ref)

        progress.update(task, description="Comparing tables...")
        comparison = compare_tables(
            TableInput(
                left_ref,
                left_page,
                tuple(left_relationships),
                filters=left_virtual,
                join_pages=fetch_related_pages(left_engine, join_refs["left"]),
            ),
            TableInput(
                right_ref,
                right_page,
                tuple(right_relationships),
                filters=right_virtual,
                join_pages=fetch_related_pages(right_engine, join_refs["right"]),
            ),
            parse_columns(columns),
            virtual_columns=virtual_columns,
            key_column=key_column,
        )

    for rejected in comparison.rejected:
        print_info(f"Ignored virtual column {rejected.name!r}")

    # Output to stdout in requested format (keep stdout clean for data)
    if fmt == "html":
        for chunk in comparison_to_html(comparison):
            sys.stdout.write(chunk)

    if fmt == "json":
        sys.stdout.write(comparison_to_json(comparison))

    if fmt == "table":
        format_summary_table(comparison_to_summary(comparison))
        format_comparison_table(comparison)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
