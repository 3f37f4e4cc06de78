from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from .model import QRToken


class TokenRepository(Protocol):
    def get_by_secret(self, secret: str) -> Optional[QRToken]:
        raise NotImplementedError

    def get_valid(self, *, clinic_id: str, branch_id: Optional[str], at: datetime) -> Optional[QRToken]:
        """Newest token of the scope whose window contains `at` and that is not superseded."""

        raise NotImplementedError

    def get_latest(self, *, clinic_id: str, branch_id: Optional[str]) -> Optional[QRToken]:
        raise NotImplementedError

    def insert(self, token: QRToken, *, supersede_at: datetime) -> QRToken:
        """Insert a token and supersede older live tokens of the same scope atomically.

        Raises TokenCycleConflict when a token with the same
        (clinic_id, branch_id, valid_from) already exists. Returns the stored
        token with its assigned token_id.
        """

        raise NotImplementedError
