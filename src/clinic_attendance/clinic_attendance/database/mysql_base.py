"""Cursor handling and MySQL value conversions shared by the repositories."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import time, timedelta
from typing import Any, Iterator, Optional

from mysql.connector import errorcode
from mysql.connector.errors import IntegrityError

from .connection import DatabaseConnection

Row = dict[str, Any]


@contextmanager
def db_cursor(conn_factory: DatabaseConnection) -> Iterator[tuple[Any, Any]]:
    """Yield (connection, dict cursor) for one unit of work.

    Commits when the block finishes, rolls back when it raises.
    """

    conn = conn_factory.connect()
    cur = conn.cursor(dictionary=True)
    try:
        yield conn, cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        cur.close()
        conn.close()


def fetchone(cur) -> Optional[Row]:
    return cur.fetchone() or None


def fetchall(cur) -> list[Row]:
    return list(cur.fetchall() or ())


def is_duplicate_key(exc: IntegrityError) -> bool:
    return getattr(exc, "errno", None) == errorcode.ER_DUP_ENTRY


def branch_key(branch_id: Optional[str]) -> str:
    # NULL never collides under a unique key, so clinic-wide rows store ''.
    return branch_id or ""


def normalize_mysql_time(value: Any) -> Optional[time]:
    """TIME columns come back as timedelta from the C extension and as time or str elsewhere."""

    if value is None or isinstance(value, time):
        return value
    if isinstance(value, timedelta):
        seconds = int(value.total_seconds()) % 86400
    elif isinstance(value, str):
        parts = [int(p) for p in value.strip().split(":") if p != ""]
        if len(parts) < 2:
            raise ValueError(f"Invalid TIME value: {value!r}")
        seconds = parts[0] * 3600 + parts[1] * 60 + (parts[2] if len(parts) > 2 else 0)
    else:
        raise TypeError(f"Unsupported TIME value type: {type(value)!r}")

    hours, rest = divmod(seconds, 3600)
    return time(hour=hours, minute=rest // 60, second=rest % 60)
