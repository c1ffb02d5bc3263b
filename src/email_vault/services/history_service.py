from __future__ import annotations

from typing import List, Optional

from ..db.base import BaseDBManager
from ..logging.ledger_logger import LedgerLogger
from ..models.history import HistoryRecord


class HistoryService:
    """
    The per-user vault of generated emails.

    `delete_by_id` does not check ownership; only expose it for records that
    came from the caller's own `list`.
    """

    def __init__(self, db: BaseDBManager, ledger: LedgerLogger) -> None:
        self._db = db
        self._ledger = ledger

    async def append(
        self,
        user_id: str,
        prompt: str,
        email: str,
        correlation_id: str | None = None,
    ) -> HistoryRecord:
        record = await self._db.add_history_record(
            HistoryRecord(user_id=user_id, prompt=prompt, email=email)
        )
        await self._ledger.log_history(
            user_id=user_id,
            message="History record saved",
            details={"record_id": record.id},
            correlation_id=correlation_id,
        )
        return record

    async def list(self, user_id: str) -> List[HistoryRecord]:
        return await self._db.list_history_records(user_id)

    async def get(self, record_id: str) -> Optional[HistoryRecord]:
        return await self._db.get_history_record(record_id)

    async def delete_by_id(self, record_id: str) -> bool:
        return await self._db.delete_history_record(record_id)
