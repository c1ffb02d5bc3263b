from __future__ import annotations

from datetime import datetime, timezone
from typing import ClassVar, List, Optional, Tuple

from pydantic import Field

from .base import DBSerializableModel


class SignupLog(DBSerializableModel):
    """
    Network address used for a successful sign-up; one sign-up per address.
    """

    collection_name: ClassVar[str] = "signup_log"
    unique_indexes: ClassVar[List[Tuple[str, ...]]] = [("ip_address",)]

    id: Optional[str] = Field(default=None)
    ip_address: str
    email: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
