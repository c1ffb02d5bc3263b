from __future__ import annotations

from typing import Dict, List, Optional

from .base import BaseDBManager
from ..errors import StorageError
from ..models.credits import CreditBalance
from ..models.history import HistoryRecord
from ..models.ledger import LedgerEntry
from ..models.signup import SignupLog


class InMemoryDBManager(BaseDBManager):
    """
    Simple in-memory implementation used for tests and local development.
    NOT suitable for production, but exercises the abstraction and services.

    Methods never await between reading and writing, so each call is atomic
    with respect to other coroutines on the same event loop.
    """

    def __init__(self) -> None:
        self._balances: Dict[str, CreditBalance] = {}
        self._history: Dict[str, HistoryRecord] = {}
        self._signups: List[SignupLog] = []
        self._ledger: List[LedgerEntry] = []
        self._id_counter: int = 0

    def _next_id(self) -> str:
        self._id_counter += 1
        return str(self._id_counter)

    # Credit balance
    async def create_credit_balance(self, balance: CreditBalance) -> CreditBalance:
        if balance.user_id in self._balances:
            raise StorageError(f"credit balance already exists for {balance.user_id}")
        self._balances[balance.user_id] = balance.model_copy()
        return balance

    async def get_credit_balance(self, user_id: str) -> Optional[CreditBalance]:
        balance = self._balances.get(user_id)
        return balance.model_copy() if balance is not None else None

    async def debit_credits(self, user_id: str, amount: int) -> Optional[int]:
        balance = self._balances.get(user_id)
        if balance is None or balance.credits < amount:
            return None
        balance.credits -= amount
        return balance.credits

    # History
    async def add_history_record(self, record: HistoryRecord) -> HistoryRecord:
        if record.id is None:
            record.id = self._next_id()
        self._history[record.id] = record
        return record

    async def get_history_record(self, record_id: str) -> Optional[HistoryRecord]:
        return self._history.get(record_id)

    async def list_history_records(self, user_id: str) -> List[HistoryRecord]:
        records = [r for r in self._history.values() if r.user_id == user_id]
        # Ids are increasing, so they break timestamp ties in insertion order
        records.sort(key=lambda r: (r.created_at, int(r.id or 0)), reverse=True)
        return records

    async def delete_history_record(self, record_id: str) -> bool:
        return self._history.pop(record_id, None) is not None

    # Sign-up log
    async def add_signup_log(self, entry: SignupLog) -> SignupLog:
        if entry.id is None:
            entry.id = self._next_id()
        self._signups.append(entry)
        return entry

    async def get_signup_log_by_ip(self, ip_address: str) -> Optional[SignupLog]:
        for entry in self._signups:
            if entry.ip_address == ip_address:
                return entry
        return None

    # Ledger
    async def add_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        if entry.id is None:
            entry.id = self._next_id()
        self._ledger.append(entry)
        return entry
