from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class User(BaseModel):
    """
    Identity as reported by the external identity provider. Read only.
    """

    id: str
    email: Optional[str] = None
