"""SQLAlchemy backed page source for tables and their relationships."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import MetaData, Table, create_engine, func, inspect, select

from tablecompare.filters import MAX_CHUNK_SIZE, chunk_size_for, paginate_filtered
from tablecompare.normalize import collation_key
from tablecompare.types import Relationship, TablePage, TableRef

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping

    from sqlalchemy import Connection, Engine, Inspector
    from sqlalchemy.engine.interfaces import ReflectedForeignKeyConstraint

    from tablecompare.filters import RelationshipContext
    from tablecompare.types import Row

logger = getLogger(__name__)

DEFAULT_LIMIT = 100


def create_source_engine(url: str) -> Engine:
    """Create a pooled engine that verifies connections before use."""
    return create_engine(url, pool_pre_ping=True)


def table_ref(engine: Engine, table: str, schema: str | None = None) -> TableRef:
    """Reference a table, defaulting to the engine's default schema."""
    if schema is None:
        schema = inspect(engine).default_schema_name or ""
    database = str(engine.url.database or "")
    return TableRef(schema=schema, table=table, database=database)


def list_tables(engine: Engine, schema: str | None = None) -> list[str]:
    """Table names of a schema in collation order."""
    names = inspect(engine).get_table_names(schema=schema)
    return sorted(names, key=lambda name: (collation_key(name), name))


def validate_window(limit: int, offset: int) -> None:
    """Reject page windows that cannot be fetched."""
    if limit < 1:
        msg = f"Page limit must be at least 1, got {limit}"
        raise ValueError(msg)
    if offset < 0:
        msg = f"Page offset must not be negative, got {offset}"
        raise ValueError(msg)


def reflect_table(engine: Engine, ref: TableRef) -> Table:
    """Reflect a table definition from the database."""
    return Table(ref.table, MetaData(), schema=ref.schema or None, autoload_with=engine)


def _read_page(
    connection: Connection,
    table: Table,
    total_rows: int,
    limit: int,
    offset: int,
) -> TablePage:
    order = list(table.primary_key.columns) or list(table.columns)
    query = select(table).order_by(*order).limit(limit).offset(offset)
    rows = tuple(dict(row) for row in connection.execute(query).mappings())
    return TablePage(
        columns=tuple(table.columns.keys()),
        rows=rows,
        total_rows=total_rows,
        has_more=offset + len(rows) < total_rows,
    )


def _count(connection: Connection, table: Table) -> int:
    return connection.execute(select(func.count()).select_from(table)).scalar_one()


def fetch_page(
    engine: Engine,
    ref: TableRef,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> TablePage:
    """Fetch one page of a table in primary key order."""
    validate_window(limit, offset)
    table = reflect_table(engine, ref)
    with engine.connect() as connection:
        return _read_page(connection, table, _count(connection, table), limit, offset)


def iter_pages(engine: Engine, ref: TableRef, chunk_size: int) -> Iterator[TablePage]:
    """Stream a whole table as consecutive pages."""
    validate_window(chunk_size, 0)
    table = reflect_table(engine, ref)
    with engine.connect() as connection:
        total_rows = _count(connection, table)
        offset = 0
        while True:
            page = _read_page(connection, table, total_rows, chunk_size, offset)
            yield page
            if not page.has_more or not page.rows:
                return
            offset += len(page.rows)


def fetch_filtered_page(  # noqa: PLR0913
    engine: Engine,
    ref: TableRef,
    filters: Mapping[str, str],
    context: RelationshipContext | None = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> TablePage:
    """Filter a table client side and return the requested window."""
    validate_window(limit, offset)
    chunks = iter_pages(engine, ref, chunk_size_for(limit))
    return paginate_filtered(chunks, filters, context, limit, offset)


def _relationships(
    fk_schema: str,
    fk_table: str,
    foreign_key: ReflectedForeignKeyConstraint,
) -> Iterator[Relationship]:
    pk_table = foreign_key["referred_table"]
    name = foreign_key.get("name") or f"FK_{fk_table}_{pk_table}"
    for fk_column, pk_column in zip(
        foreign_key["constrained_columns"],
        foreign_key["referred_columns"],
        strict=True,
    ):
        yield Relationship(
            fk_schema=fk_schema,
            fk_table=fk_table,
            fk_column=fk_column,
            pk_schema=foreign_key.get("referred_schema") or fk_schema,
            pk_table=pk_table,
            pk_column=pk_column,
            name=name,
        )


def _foreign_keys(
    inspector: Inspector,
    schema: str,
    table: str,
) -> Iterator[Relationship]:
    for foreign_key in inspector.get_foreign_keys(table, schema=schema or None):
        yield from _relationships(schema, table, foreign_key)


def fetch_relationships(engine: Engine, ref: TableRef) -> list[Relationship]:
    """Foreign keys leaving the table and those pointing at it."""
    inspector = inspect(engine)
    schema = ref.schema or inspector.default_schema_name or ""

    outgoing = list(_foreign_keys(inspector, schema, ref.table))
    incoming = [
        relationship
        for table in inspector.get_table_names(schema=schema or None)
        if table != ref.table
        for relationship in _foreign_keys(inspector, schema, table)
        if relationship.pk_schema == schema and relationship.pk_table == ref.table
    ]
    logger.debug(
        "%s has %d outgoing and %d incoming relationships",
        ref.key,
        len(outgoing),
        len(incoming),
    )
    return [*outgoing, *incoming]


def fetch_table(
    engine: Engine,
    ref: TableRef,
    chunk_size: int = MAX_CHUNK_SIZE,
) -> TablePage:
    """Fetch every row of a table as a single page."""
    columns: tuple[str, ...] = ()
    rows: list[Row] = []
    for page in iter_pages(engine, ref, chunk_size):
        columns = page.columns
        rows.extend(page.rows)
    return TablePage(columns=columns, rows=tuple(rows), total_rows=len(rows))


def fetch_related_pages(
    engine: Engine,
    refs: Iterable[TableRef],
) -> dict[str, TablePage]:
    """Whole related tables keyed by table key."""
    return {ref.key: fetch_table(engine, ref) for ref in dict.fromkeys(refs)}
