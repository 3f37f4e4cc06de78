from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator

from .connection import DatabaseConnection, DBConfig

logger = logging.getLogger(__name__)

# schema.sql may pin a database name for manual use; the configured one wins.
_DB_SELECTION = re.compile(r"^\s*(CREATE\s+DATABASE|USE)\b", re.IGNORECASE)


def schema_statements(sql: str) -> Iterator[str]:
    """Split a schema file into statements.

    Statements end with ';' at the end of a line. Whole-line '--' comments
    are dropped.
    """

    pending: list[str] = []
    for line in sql.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("--"):
            continue
        pending.append(line)
        if stripped.endswith(";"):
            stmt = "\n".join(pending).strip().rstrip(";").strip()
            pending = []
            if stmt and not _DB_SELECTION.match(stmt):
                yield stmt

    leftover = "\n".join(pending).strip()
    if leftover and not _DB_SELECTION.match(leftover):
        yield leftover


def ensure_database_exists(db_config: dict) -> None:
    target = DBConfig.from_dict(db_config)
    conn = DatabaseConnection(target).connect(with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` "
            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> int:
    """Create the database if needed and run every statement of schema.sql. Returns the statement count."""

    ensure_database_exists(db_config)
    path = Path(schema_path)

    conn = DatabaseConnection(DBConfig.from_dict(db_config)).connect()
    applied = 0
    try:
        cur = conn.cursor()
        for stmt in schema_statements(path.read_text(encoding="utf-8")):
            cur.execute(stmt)
            applied += 1
        conn.commit()
    finally:
        conn.close()

    logger.info("schema %s: %d statements applied", path.name, applied)
    return applied


def list_tables(db_config: dict) -> list[str]:
    conn = DatabaseConnection(DBConfig.from_dict(db_config)).connect()
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return sorted(row[0] for row in cur.fetchall())
    finally:
        conn.close()
