"""Download, validate and replay SQL backup files."""

import re
import shutil
import time
from collections.abc import Collection, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Final
from urllib.parse import urlparse
from urllib.request import url2pathname

import requests
from loguru import logger
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

VALIDATION_BYTES: Final[int] = 1024
_CHUNK_SIZE: Final[int] = 64 * 1024
_SQL_KEYWORDS = re.compile(r"INSERT|CREATE|UPDATE")
_TABLE_NAME = re.compile(r"(?:INSERT INTO|UPDATE)\s+[`\"\[]?(\w+)[`\"\]]?", re.IGNORECASE)
_TARGET_TABLE = re.compile(
    r"(?:INSERT\s+INTO|UPDATE|CREATE\s+TABLE(?:\s+IF\s+NOT\s+EXISTS)?)\s+[`\"\[]?(\w+)[`\"\]]?",
    re.IGNORECASE,
)
_QUOTES: Final[str] = "'\"`"


class RestoreError(Exception):
    """Restore could not be completed."""


@dataclass
class RestoreStats:
    records_processed: int = 0
    tables_restored: list[str] = field(default_factory=list)
    duration: str = "0ms"


def download_backup(url: str, destination: Path, timeout: float = 300.0) -> Path:
    """Fetch ``url`` (http, https or file) into ``destination``.

    Raises:
        RestoreError: Unsupported scheme, HTTP error or unreadable source.
    """
    scheme = urlparse(url).scheme.lower()
    logger.info(f"Downloading backup from: {url}")

    if scheme == "file":
        source = Path(url2pathname(urlparse(url).path))
        if not source.is_file():
            raise RestoreError(f"Backup file not found: {source}")
        _ = shutil.copyfile(source, destination)

    elif scheme in ("http", "https"):
        try:
            with requests.get(url, stream=True, timeout=timeout) as response:
                if response.status_code != 200:
                    raise RestoreError(
                        f"Failed to download backup file: HTTP {response.status_code}"
                    )
                with open(destination, "wb") as f:
                    for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                        _ = f.write(chunk)
        except requests.RequestException as exc:
            destination.unlink(missing_ok=True)
            raise RestoreError(f"Download failed: {exc}") from exc

    else:
        raise RestoreError(f"Unsupported backup URL scheme: '{scheme or url}'")

    logger.info(f"Backup file downloaded successfully: {destination}")
    return destination


def validate_backup(path: Path) -> None:
    """Reject missing, empty or non-SQL files (judged by the first KiB)."""
    if not path.is_file():
        raise RestoreError("Backup file not found")
    if path.stat().st_size == 0:
        raise RestoreError("Backup file is empty")

    with open(path, "rb") as f:
        head = f.read(VALIDATION_BYTES).decode("utf-8", errors="ignore")
    if not _SQL_KEYWORDS.search(head):
        raise RestoreError("Invalid backup file format")


def split_statements(content: str) -> list[str]:
    """Split on ``;`` outside quoted literals and identifiers.

    ``--`` comments run to the end of the line and are dropped, unless they
    sit inside a quoted value. A doubled quote (``'o''brien'``) stays inside
    its literal.
    """
    statements: list[str] = []
    current: list[str] = []
    quote: str | None = None
    i = 0
    n = len(content)
    while i < n:
        ch = content[i]
        if quote is not None:
            current.append(ch)
            if ch == quote:
                if i + 1 < n and content[i + 1] == quote:
                    current.append(content[i + 1])
                    i += 1
                else:
                    quote = None
        elif ch in _QUOTES:
            quote = ch
            current.append(ch)
        elif ch == "-" and content.startswith("--", i):
            end = content.find("\n", i)
            i = n if end == -1 else end
            continue
        elif ch == ";":
            statement = "".join(current).strip()
            if statement:
                statements.append(statement)
            current = []
        else:
            current.append(ch)
        i += 1

    statement = "".join(current).strip()
    if statement:
        statements.append(statement)
    return statements


def target_table(statement: str) -> str | None:
    """Table written by an INSERT, UPDATE or CREATE TABLE statement."""
    match = _TARGET_TABLE.match(statement)
    return match.group(1) if match else None


def _batches(items: list[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def restore_statements(
    engine: Engine,
    path: Path,
    batch_size: int = 100,
    progress_callback: Callable[[int], None] | None = None,
    tables: Collection[str] | None = None,
) -> RestoreStats:
    """Execute every statement of ``path`` against ``engine``.

    A failing statement is logged and skipped, unless the database reports a
    syntax error, which aborts the restore. With ``tables``, statements that
    write any other table are skipped; statements without a target table
    always run.
    """
    started = time.monotonic()
    statements = split_statements(path.read_text(encoding="utf-8"))
    if tables is not None:
        wanted = set(tables)
        statements = [
            s for s in statements if (name := target_table(s)) is None or name in wanted
        ]
    logger.info(f"Found {len(statements)} SQL statements to execute")

    stats = RestoreStats()
    total_batches = max(1, -(-len(statements) // batch_size))

    for number, batch in enumerate(_batches(statements, batch_size), start=1):
        for statement in batch:
            try:
                with engine.begin() as conn:
                    _ = conn.exec_driver_sql(statement)
            except SQLAlchemyError as exc:
                logger.warning(f"Failed to execute statement: {statement[:100]}... ({exc})")
                if "syntax error" in str(exc):
                    raise RestoreError(f"Restoration failed: {exc}") from exc
                continue

            stats.records_processed += 1
            match = _TABLE_NAME.search(statement)
            if match and match.group(1) not in stats.tables_restored:
                stats.tables_restored.append(match.group(1))

        logger.debug(f"Processed batch {number} of {total_batches}")
        if progress_callback:
            progress_callback(min(99, number * 100 // total_batches))

    stats.duration = f"{int((time.monotonic() - started) * 1000)}ms"
    return stats


def cleanup(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning(f"Failed to clean up temporary file {path}: {exc}")
