from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Branch


class BranchRepository(Protocol):
    def list_active(self, clinic_id: str) -> Sequence[Branch]:
        raise NotImplementedError

    def get_by_id(self, branch_id: str) -> Optional[Branch]:
        raise NotImplementedError
