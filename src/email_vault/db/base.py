from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models.credits import CreditBalance
from ..models.history import HistoryRecord
from ..models.ledger import LedgerEntry
from ..models.signup import SignupLog


class BaseDBManager(ABC):
    """
    DB-agnostic async manager interface.

    Concrete implementations (MongoDB, in-memory) implement these methods and
    translate driver failures into `email_vault.errors.StorageError`.
    Services receive an instance explicitly; there is no module-level client.
    """

    async def ensure_indexes(self) -> None:
        """Create indexes the backend needs; a no-op where there are none."""

    # Credit balance
    @abstractmethod
    async def create_credit_balance(self, balance: CreditBalance) -> CreditBalance: ...

    @abstractmethod
    async def get_credit_balance(self, user_id: str) -> Optional[CreditBalance]: ...

    @abstractmethod
    async def debit_credits(self, user_id: str, amount: int) -> Optional[int]:
        """
        Atomically subtract `amount` where the balance is at least `amount`.

        Returns the new balance, or None when no row changed (missing row or
        insufficient balance). Never drives a balance negative.
        """
        ...

    # History
    @abstractmethod
    async def add_history_record(self, record: HistoryRecord) -> HistoryRecord: ...

    @abstractmethod
    async def get_history_record(self, record_id: str) -> Optional[HistoryRecord]: ...

    @abstractmethod
    async def list_history_records(self, user_id: str) -> List[HistoryRecord]:
        """All records of a user, newest first."""
        ...

    @abstractmethod
    async def delete_history_record(self, record_id: str) -> bool: ...

    # Sign-up log
    @abstractmethod
    async def add_signup_log(self, entry: SignupLog) -> SignupLog: ...

    @abstractmethod
    async def get_signup_log_by_ip(self, ip_address: str) -> Optional[SignupLog]: ...

    # Ledger
    @abstractmethod
    async def add_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry: ...
