from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .generation import GenerationResult


class GenerateEmailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Optional so that a missing prompt is reported as 400, not 422
    prompt: Optional[str] = None
    auth_token: Optional[str] = Field(default=None, alias="authToken")


class UsageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt_tokens: int = Field(alias="promptTokens")
    completion_tokens: int = Field(alias="completionTokens")
    total_tokens: int = Field(alias="totalTokens")


class GenerateEmailResponse(BaseModel):
    email: str
    model: str
    usage: UsageResponse
    saved: bool
    message: Optional[str] = None
    credits_remaining: Optional[int] = None

    @classmethod
    def from_result(cls, result: GenerationResult) -> "GenerateEmailResponse":
        return cls(
            email=result.email,
            model=result.model,
            usage=UsageResponse(
                prompt_tokens=result.usage.prompt_tokens,
                completion_tokens=result.usage.completion_tokens,
                total_tokens=result.usage.total_tokens,
            ),
            saved=result.saved,
            message=result.message,
            credits_remaining=result.credits_remaining,
        )


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
    message: Optional[str] = None
    code: Optional[str] = None
    type: Optional[str] = None


class SignupRequest(BaseModel):
    email: str
    password: str


class SignupUser(BaseModel):
    id: str
    email: Optional[str] = None


class SignupResponse(BaseModel):
    success: bool
    message: str
    user: SignupUser


class HistoryRecordResponse(BaseModel):
    id: str
    prompt: str
    email: str
    created_at: datetime


class CreditBalanceResponse(BaseModel):
    user_id: str
    credits: int
