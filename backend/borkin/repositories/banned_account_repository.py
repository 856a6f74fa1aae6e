"""Repository for the admin ban ledger."""

from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..models.banned_account import BannedAccount
from .base_repository import BaseRepository


class BannedAccountRepository(BaseRepository[BannedAccount]):
    def __init__(self, db: Session):
        super().__init__(db, BannedAccount)

    def find_ban(
        self, role: str, *, user_id: Optional[str] = None, email: Optional[str] = None
    ) -> List[BannedAccount]:
        criteria = []
        if user_id:
            criteria.append(BannedAccount.user_id == user_id)
        if email:
            criteria.append(BannedAccount.email == email)
        if not criteria:
            return []
        return self._execute_query(
            self._build_query().filter(BannedAccount.role == role, or_(*criteria))
        )

    def list_by_role(self, role: str) -> List[BannedAccount]:
        return self._execute_query(
            self._build_query()
            .filter(BannedAccount.role == role)
            .order_by(BannedAccount.created_at.desc())
        )
