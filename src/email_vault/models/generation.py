from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from ..errors import SoftFailure


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class Completion(BaseModel):
    """What the generation backend hands back for one prompt."""

    text: str
    model: str
    usage: TokenUsage = Field(default_factory=TokenUsage)


class GenerationResult(BaseModel):
    """
    Outcome of one generation request. Built once per request, never stored.
    """

    email: str
    model: str
    usage: TokenUsage
    saved: bool = False
    message: Optional[str] = None
    credits_remaining: Optional[int] = None
    failures: List[SoftFailure] = Field(default_factory=list)

    def degrade(self, failure: SoftFailure, message: str) -> None:
        self.failures.append(failure)
        self.message = message
