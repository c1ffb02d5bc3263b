from __future__ import annotations

from datetime import datetime, timezone
from typing import ClassVar, List, Optional, Tuple

from pydantic import Field

from .base import DBSerializableModel


class HistoryRecord(DBSerializableModel):
    """
    One saved generation in a user's vault. Immutable once created.
    """

    collection_name: ClassVar[str] = "history_record"
    indexes: ClassVar[List[Tuple[Tuple[str, int], ...]]] = [(("user_id", 1), ("created_at", -1))]

    id: Optional[str] = Field(default=None)
    user_id: str
    prompt: str
    email: str = Field(description="Generated email text.")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
