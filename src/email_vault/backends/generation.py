"""
Generation backends.

A backend turns a prompt into email text plus token usage, or raises one of
`UpstreamAuthError` / `UpstreamError`. Nothing here touches credits or
history.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from openai import APIError, APIStatusError, AsyncOpenAI, AuthenticationError

from ..errors import UpstreamAuthError, UpstreamError
from ..models.generation import Completion, TokenUsage


logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are a professional email assistant. Write clear, polite, "
    "well-formatted emails based on user requests."
)


class GenerationBackend(ABC):
    @property
    @abstractmethod
    def configured(self) -> bool:
        """False when the backend has no credential and must not be called."""

    @abstractmethod
    async def generate(self, prompt: str) -> Completion: ...


class OpenAIGenerationBackend(GenerationBackend):
    """Chat-completions backend using the async OpenAI SDK."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-3.5-turbo",
        temperature: float = 0.7,
        max_tokens: int = 400,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    @property
    def client(self) -> AsyncOpenAI:
        # Created lazily; AsyncOpenAI refuses to start without a key
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    def _messages(self, prompt: str) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": SYSTEM_INSTRUCTION},
            {"role": "user", "content": prompt},
        ]

    async def generate(self, prompt: str) -> Completion:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=self._messages(prompt),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except APIStatusError as exc:
            if _is_auth_failure(exc):
                logger.error("OpenAI authentication failed (status %s)", exc.status_code)
                raise UpstreamAuthError(
                    "Invalid or expired OpenAI API key",
                    details="Check OPENAI_API_KEY in the service configuration",
                ) from exc
            logger.error(
                "OpenAI API error: status=%s code=%s type=%s message=%s",
                exc.status_code,
                exc.code,
                exc.type,
                exc.message,
            )
            raise UpstreamError(
                exc.message or "Failed to generate email with OpenAI",
                upstream_status=exc.status_code,
                code=exc.code,
                error_type=exc.type,
            ) from exc
        except APIError as exc:
            # Connection and timeout errors carry no HTTP status
            logger.error("OpenAI request failed: %s", exc)
            raise UpstreamError(
                "Failed to generate email with OpenAI",
                code=exc.code,
                error_type=exc.type,
                details=str(exc),
            ) from exc

        return self._to_completion(response)

    def _to_completion(self, response: Any) -> Completion:
        if not response.choices:
            logger.error("OpenAI response has no choices")
            raise UpstreamError(
                "Failed to generate email with OpenAI", details="empty choices"
            )
        text = response.choices[0].message.content or ""
        usage = response.usage
        token_usage = TokenUsage()
        if usage is not None:
            token_usage = TokenUsage(
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
            )
            logger.info(
                "Token usage: prompt=%s completion=%s total=%s",
                usage.prompt_tokens,
                usage.completion_tokens,
                usage.total_tokens,
            )
        return Completion(text=text, model=self.model, usage=token_usage)


def _is_auth_failure(exc: APIStatusError) -> bool:
    # A 401, or any status error whose message mentions the API key
    return isinstance(exc, AuthenticationError) or "API key" in (exc.message or "")
