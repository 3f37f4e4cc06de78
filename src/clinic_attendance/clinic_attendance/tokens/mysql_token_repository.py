from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional

from mysql.connector.errors import IntegrityError

from ..core.enums import RefreshPeriod
from ..core.exceptions import TokenCycleConflict
from ..database.connection import DatabaseConnection
from ..database.mysql_base import branch_key, db_cursor, fetchone, is_duplicate_key
from .model import QRToken
from .repository import TokenRepository

_COLUMNS = """
    token_id, clinic_id, branch_id, secret, valid_from, valid_until, refresh_period,
    center_lat, center_lon, radius_meters, created_at, superseded_at
"""


def _row_to_token(r: dict) -> QRToken:
    return QRToken(
        token_id=int(r["token_id"]),
        clinic_id=r["clinic_id"],
        branch_id=r.get("branch_id"),
        secret=r["secret"],
        valid_from=r["valid_from"],
        valid_until=r["valid_until"],
        refresh_period=RefreshPeriod(r["refresh_period"]),
        center_lat=r.get("center_lat"),
        center_lon=r.get("center_lon"),
        radius_meters=r.get("radius_meters"),
        created_at=r.get("created_at"),
        superseded_at=r.get("superseded_at"),
    )


class MySQLTokenRepository(TokenRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_secret(self, secret: str) -> Optional[QRToken]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_qr_tokens WHERE secret=%s", (secret,))
            r = fetchone(cur)
            return _row_to_token(r) if r else None

    def get_valid(self, *, clinic_id: str, branch_id: Optional[str], at: datetime) -> Optional[QRToken]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_qr_tokens
                WHERE clinic_id=%s AND branch_key=%s
                  AND valid_from <= %s AND valid_until >= %s
                  AND (superseded_at IS NULL OR superseded_at > %s)
                ORDER BY token_id DESC
                LIMIT 1
                """,
                (clinic_id, branch_key(branch_id), at, at, at),
            )
            r = fetchone(cur)
            return _row_to_token(r) if r else None

    def get_latest(self, *, clinic_id: str, branch_id: Optional[str]) -> Optional[QRToken]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_qr_tokens
                WHERE clinic_id=%s AND branch_key=%s
                ORDER BY token_id DESC
                LIMIT 1
                """,
                (clinic_id, branch_key(branch_id)),
            )
            r = fetchone(cur)
            return _row_to_token(r) if r else None

    def insert(self, token: QRToken, *, supersede_at: datetime) -> QRToken:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_qr_tokens(
                        clinic_id, branch_id, branch_key, secret, valid_from, valid_until, refresh_period,
                        center_lat, center_lon, radius_meters, created_at
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        token.clinic_id,
                        token.branch_id,
                        branch_key(token.branch_id),
                        token.secret,
                        token.valid_from,
                        token.valid_until,
                        token.refresh_period.value,
                        token.center_lat,
                        token.center_lon,
                        token.radius_meters,
                        token.created_at,
                    ),
                )
                token_id = int(cur.lastrowid)
                # Same transaction: older live tokens stop being valid as the new row appears.
                cur.execute(
                    """
                    UPDATE attendance_qr_tokens
                    SET superseded_at=%s
                    WHERE clinic_id=%s AND branch_key=%s AND token_id < %s
                      AND superseded_at IS NULL AND valid_until >= %s
                    """,
                    (supersede_at, token.clinic_id, branch_key(token.branch_id), token_id, supersede_at),
                )
        except IntegrityError as e:
            if is_duplicate_key(e):
                raise TokenCycleConflict(f"token already issued for clinic={token.clinic_id} cycle={token.valid_from}")
            raise
        return replace(token, token_id=token_id)
