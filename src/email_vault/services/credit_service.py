from __future__ import annotations

import logging
from typing import Optional

from ..db.base import BaseDBManager
from ..errors import CreditBalanceNotFound
from ..logging.ledger_logger import LedgerLogger
from ..models.credits import CreditBalance


logger = logging.getLogger(__name__)


class CreditService:
    """
    Per-user credit counter.

    `check` and `debit` are separate calls; `debit` is an atomic conditional
    decrement, so a balance that was positive at `check` time may already be
    spent by a concurrent request when `debit` runs. Callers must treat a
    `None` from `debit` as exhaustion.
    """

    def __init__(self, db: BaseDBManager, ledger: LedgerLogger) -> None:
        self._db = db
        self._ledger = ledger

    async def provision(
        self,
        user_id: str,
        credits: int,
        correlation_id: str | None = None,
    ) -> CreditBalance:
        if credits < 0:
            raise ValueError("credits must be >= 0")

        balance = await self._db.create_credit_balance(
            CreditBalance(user_id=user_id, credits=credits)
        )
        await self._ledger.log_credit(
            user_id=user_id,
            message="Credits provisioned",
            details={"credits": credits},
            correlation_id=correlation_id,
        )
        return balance

    async def check(self, user_id: str) -> int:
        """
        Current balance. Raises CreditBalanceNotFound when the user has none,
        StorageError when the ledger cannot be read.
        """
        balance = await self._db.get_credit_balance(user_id)
        if balance is None:
            raise CreditBalanceNotFound(user_id)
        return balance.credits

    async def debit(
        self,
        user_id: str,
        amount: int = 1,
        correlation_id: str | None = None,
    ) -> Optional[int]:
        """
        Subtract `amount` if the balance covers it.

        Returns the new balance, or None when nothing was debited.
        """
        if amount <= 0:
            raise ValueError("amount must be positive")

        new_balance = await self._db.debit_credits(user_id, amount)
        if new_balance is None:
            await self._ledger.log_error(
                message="Insufficient credits for debit",
                details={"requested": amount},
                user_id=user_id,
                correlation_id=correlation_id,
            )
            return None

        await self._ledger.log_credit(
            user_id=user_id,
            message="Credits debited",
            details={"amount": amount, "new_balance": new_balance},
            correlation_id=correlation_id,
        )
        logger.debug("Debited %s credit(s) from %s, %s left", amount, user_id, new_balance)
        return new_balance
