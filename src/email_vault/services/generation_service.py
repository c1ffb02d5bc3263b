from __future__ import annotations

import logging
from typing import Optional
from uuid import uuid4

from ..backends.generation import GenerationBackend
from ..backends.identity import IdentityProvider
from ..errors import (
    CreditBalanceNotFound,
    CreditsExhausted,
    IdentityProviderError,
    InvalidInput,
    ServiceUnavailable,
    SoftFailure,
    StorageError,
)
from ..models.generation import GenerationResult
from ..models.user import User
from ..utils import mask_email
from .credit_service import CreditService
from .history_service import HistoryService


logger = logging.getLogger(__name__)


class GenerationService:
    """
    Credit-gated email generation.

    Only failures that happen before text exists (input, configuration,
    backend) abort the request. Ledger and history failures afterwards are
    absorbed into the result, with one exception: a caller without credits
    gets `CreditsExhausted` and the generated text is discarded. Any other
    unexpected error in that stage is reported as `SoftFailure.SAVE_FAILED`.

    Credits are checked after the backend call, so an exhausted caller still
    costs one backend request.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        identity: IdentityProvider,
        credits: CreditService,
        history: HistoryService,
    ) -> None:
        self._backend = backend
        self._identity = identity
        self._credits = credits
        self._history = history

    async def generate(
        self, prompt: Optional[str], caller_token: Optional[str] = None
    ) -> GenerationResult:
        if not self._backend.configured:
            logger.error("Generation backend has no API key configured")
            raise ServiceUnavailable(
                "OpenAI API key is not configured",
                details="Set OPENAI_API_KEY in the service environment",
            )
        if prompt is None or not prompt.strip():
            raise InvalidInput("A prompt is required")

        completion = await self._backend.generate(prompt)
        result = GenerationResult(
            email=completion.text,
            model=completion.model,
            usage=completion.usage,
        )

        try:
            return await self._record(caller_token, prompt, result)
        except CreditsExhausted:
            raise
        except Exception:
            # The text exists, so it is still returned
            logger.exception("Error processing save request")
            result.saved = False
            result.degrade(SoftFailure.SAVE_FAILED, "Error processing save request")
            return result

    async def _record(
        self, caller_token: Optional[str], prompt: str, result: GenerationResult
    ) -> GenerationResult:
        user = await self._resolve_caller(caller_token)
        if user is None:
            result.degrade(SoftFailure.UNAUTHENTICATED, "User not authenticated")
            logger.info("Caller not authenticated, skipping credits and history")
            return result

        return await self._charge_and_save(user, prompt, result)

    async def _resolve_caller(self, token: Optional[str]) -> Optional[User]:
        if not token:
            return None
        try:
            user = await self._identity.get_user(token)
        except IdentityProviderError as exc:
            logger.info("Token rejected by identity provider: %s", exc.message)
            return None
        logger.info("User authenticated: %s", mask_email(user.email))
        return user

    async def _charge_and_save(
        self, user: User, prompt: str, result: GenerationResult
    ) -> GenerationResult:
        correlation_id = uuid4().hex

        try:
            balance = await self._credits.check(user.id)
        except CreditBalanceNotFound:
            logger.info("No credit balance for %s", mask_email(user.email))
            raise CreditsExhausted() from None
        except StorageError:
            logger.exception("Error checking user credits")
            result.degrade(SoftFailure.LEDGER_READ_FAILED, "Failed to check user credits")
            return result

        if balance <= 0:
            logger.info("User has no remaining credits: %s", mask_email(user.email))
            raise CreditsExhausted()

        try:
            remaining = await self._credits.debit(user.id, 1, correlation_id=correlation_id)
        except StorageError:
            logger.exception("Error updating user credits")
            result.degrade(SoftFailure.DEBIT_FAILED, "Failed to update user credits")
        else:
            if remaining is None:
                # A concurrent request spent the last credit after our check
                logger.info("Credit taken by a concurrent request: %s", mask_email(user.email))
                raise CreditsExhausted()
            logger.info("User credit updated: %s -> %s", balance, remaining)
            result.credits_remaining = remaining

        try:
            await self._history.append(
                user.id, prompt, result.email, correlation_id=correlation_id
            )
        except StorageError:
            # The debit is not refunded
            logger.exception("Error saving email to history")
            result.degrade(SoftFailure.HISTORY_APPEND_FAILED, "Failed to save email")
        else:
            result.saved = True

        return result
