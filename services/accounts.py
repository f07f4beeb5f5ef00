"""Account directory used to validate hostel and volunteer identities."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from models import db
from models.user import User


@dataclass(frozen=True)
class AccountRecord:
    """Role and existence of an account as seen by the lifecycle."""

    id: int
    role: str | None
    exists: bool


class AccountDirectory(ABC):
    """Interface for account lookups."""

    @abstractmethod
    def find_account(self, account_id: int) -> AccountRecord:
        """Return the account record for ``account_id``.

        Unknown ids yield a record with ``exists=False``.
        """


class UserAccountDirectory(AccountDirectory):
    """Resolve accounts from the ``users`` table."""

    def find_account(self, account_id: int) -> AccountRecord:
        user = db.session.get(User, account_id) if account_id is not None else None
        if user is None:
            return AccountRecord(id=account_id, role=None, exists=False)
        return AccountRecord(id=user.id, role=user.role, exists=True)
