"""Dump database tables to JSON, CSV or SQL INSERT files."""

import csv
import gzip
import json
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import IO, Any, Callable, Literal

from sqlalchemy import Engine, MetaData, Table, select
from sqlalchemy.schema import CreateTable

DumpFormat = Literal["json", "csv", "sql"]


@dataclass
class DumpStats:
    records: int = 0
    tables: list[str] = field(default_factory=list)


def reflect_tables(engine: Engine, tables: Sequence[str] | None = None) -> list[Table]:
    """Reflect ``tables`` (all tables when None) in name order.

    Raises:
        sqlalchemy.exc.InvalidRequestError: A requested table does not exist.
    """
    metadata = MetaData()
    metadata.reflect(bind=engine, only=list(tables) if tables else None)
    names = list(tables) if tables else sorted(metadata.tables)
    return [metadata.tables[name] for name in names]


def _iter_rows(engine: Engine, table: Table, batch_size: int) -> Iterator[dict[str, Any]]:
    with engine.connect() as conn:
        result = conn.execute(select(table)).mappings()
        while batch := result.fetchmany(batch_size):
            for row in batch:
                yield dict(row)


@contextmanager
def _open_text(path: Path, compress: bool) -> Iterator[IO[str]]:
    if compress:
        with gzip.open(path, "wt", encoding="utf-8", newline="") as f:
            yield f
    else:
        with open(path, "w", encoding="utf-8", newline="") as f:
            yield f


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, bytes):
        return value.hex()
    return str(value)


def sql_literal(value: Any) -> str:
    """Render a Python value as an SQL literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (dict, list)):
        value = json.dumps(value, default=_json_default)
    elif isinstance(value, (datetime, date)):
        value = value.isoformat()
    elif isinstance(value, bytes):
        return f"X'{value.hex()}'"
    text = str(value).replace("'", "''")
    return f"'{text}'"


def _quote(engine: Engine, name: str) -> str:
    return engine.dialect.identifier_preparer.quote(name)


def dump_tables(
    engine: Engine,
    tables: Sequence[Table],
    path: Path,
    fmt: DumpFormat,
    *,
    compress: bool = False,
    include_schema: bool = False,
    batch_size: int = 1000,
    progress_callback: Callable[[int], None] | None = None,
) -> DumpStats:
    """Write ``tables`` to ``path``.

    ``json`` and ``sql`` produce one file; ``csv`` treats ``path`` as a
    directory holding ``<table>.csv`` per table.
    """
    stats = DumpStats()
    total = len(tables) or 1

    def table_done(table: Table) -> None:
        stats.tables.append(table.name)
        if progress_callback:
            progress_callback(len(stats.tables) * 100 // total)

    if fmt == "csv":
        path.mkdir(parents=True, exist_ok=True)
        for table in tables:
            with open(path / f"{table.name}.csv", "w", encoding="utf-8", newline="") as f:
                writer = csv.DictWriter(f, fieldnames=[c.name for c in table.columns])
                writer.writeheader()
                for row in _iter_rows(engine, table, batch_size):
                    writer.writerow(row)
                    stats.records += 1
            table_done(table)
        return stats

    with _open_text(path, compress) as out:
        if fmt == "json":
            _ = out.write("{")
            for index, table in enumerate(tables):
                rows = list(_iter_rows(engine, table, batch_size))
                prefix = "," if index else ""
                _ = out.write(f"{prefix}{json.dumps(table.name)}:")
                json.dump(rows, out, default=_json_default)
                stats.records += len(rows)
                table_done(table)
            _ = out.write("}\n")
        else:
            for table in tables:
                _ = out.write(f"-- Table: {table.name}\n")
                if include_schema:
                    ddl = str(CreateTable(table).compile(dialect=engine.dialect)).strip()
                    _ = out.write(f"{ddl};\n")
                columns = ", ".join(_quote(engine, c.name) for c in table.columns)
                for row in _iter_rows(engine, table, batch_size):
                    values = ", ".join(sql_literal(row[c.name]) for c in table.columns)
                    _ = out.write(
                        f"INSERT INTO {_quote(engine, table.name)} ({columns}) VALUES ({values});\n"
                    )
                    stats.records += 1
                table_done(table)

    return stats
