from __future__ import annotations

from datetime import datetime, timezone
from typing import ClassVar

from pydantic import Field

from .base import DBSerializableModel


class CreditBalance(DBSerializableModel):
    """
    Remaining generation allowance for one user.

    Keyed by `user_id`; there is at most one row per user.
    """

    collection_name: ClassVar[str] = "credit_balance"
    primary_key: ClassVar[str] = "user_id"

    user_id: str
    # Read as-is; anything <= 0 means exhausted
    credits: int = Field(description="Generations the user may still request.")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
