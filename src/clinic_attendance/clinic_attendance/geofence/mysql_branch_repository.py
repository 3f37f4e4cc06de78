from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Branch
from .repository import BranchRepository


def _row_to_branch(r: dict) -> Branch:
    return Branch(
        branch_id=r["branch_id"],
        clinic_id=r["clinic_id"],
        name=r["branch_name"],
        latitude=r.get("latitude"),
        longitude=r.get("longitude"),
        radius_meters=float(r.get("radius_meters") or 0),
        is_active=bool(r.get("is_active")),
    )


class MySQLBranchRepository(BranchRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_active(self, clinic_id: str) -> Sequence[Branch]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT branch_id, clinic_id, branch_name, latitude, longitude, radius_meters, is_active
                FROM clinic_branches
                WHERE clinic_id=%s AND is_active=1
                ORDER BY branch_name
                """,
                (clinic_id,),
            )
            return [_row_to_branch(r) for r in fetchall(cur)]

    def get_by_id(self, branch_id: str) -> Optional[Branch]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT branch_id, clinic_id, branch_name, latitude, longitude, radius_meters, is_active
                FROM clinic_branches
                WHERE branch_id=%s
                """,
                (branch_id,),
            )
            r = fetchone(cur)
            return _row_to_branch(r) if r else None
