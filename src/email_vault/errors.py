from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class GenerationErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    SERVICE_UNAVAILABLE = "service_unavailable"
    UPSTREAM_AUTH_ERROR = "upstream_auth_error"
    UPSTREAM_ERROR = "upstream_error"
    CREDITS_EXHAUSTED = "credits_exhausted"


class SoftFailure(str, Enum):
    """
    Non-fatal problems that happen after text has been generated.

    They degrade the `saved` / `credits_remaining` fields of a result instead
    of aborting the request.
    """

    UNAUTHENTICATED = "unauthenticated"
    LEDGER_READ_FAILED = "ledger_read_failed"
    DEBIT_FAILED = "debit_failed"
    HISTORY_APPEND_FAILED = "history_append_failed"
    SAVE_FAILED = "save_failed"


class StorageError(Exception):
    """Raised by DB managers when the backing store cannot serve a request."""


class CreditBalanceNotFound(LookupError):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"no credit balance for user {user_id}")
        self.user_id = user_id


class IdentityProviderError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class GenerationError(Exception):
    """
    Base class for failures that abort a generation request.

    Subclasses pin `kind` and `status_code`; the HTTP layer branches on `kind`.
    """

    kind: GenerationErrorKind
    status_code: int = 500

    def __init__(
        self,
        error: str,
        details: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        super().__init__(error)
        self.error = error
        self.details = details
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.details is not None:
            body["details"] = self.details
        if self.message is not None:
            body["message"] = self.message
        return body


class InvalidInput(GenerationError):
    kind = GenerationErrorKind.INVALID_INPUT
    status_code = 400


class ServiceUnavailable(GenerationError):
    kind = GenerationErrorKind.SERVICE_UNAVAILABLE
    status_code = 500


class UpstreamAuthError(GenerationError):
    kind = GenerationErrorKind.UPSTREAM_AUTH_ERROR
    status_code = 401


class UpstreamError(GenerationError):
    kind = GenerationErrorKind.UPSTREAM_ERROR

    def __init__(
        self,
        error: str,
        upstream_status: Optional[int] = None,
        code: Optional[str] = None,
        error_type: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(error, details=details)
        self.upstream_status = upstream_status
        self.code = code
        self.error_type = error_type
        # Pass the upstream status through only when it is an error status
        if upstream_status is not None and 400 <= upstream_status <= 599:
            self.status_code = upstream_status
        else:
            self.status_code = 500

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.code is not None:
            body["code"] = self.code
        if self.error_type is not None:
            body["type"] = self.error_type
        return body


class CreditsExhausted(GenerationError):
    kind = GenerationErrorKind.CREDITS_EXHAUSTED
    status_code = 403

    def __init__(self) -> None:
        super().__init__(
            "No remaining credits", message="You have used all your credits"
        )


class SignupRejected(Exception):
    """Sign-up refused because of caller input (domain, duplicate address or email)."""

    status_code = 400


class SignupFailed(Exception):
    """Sign-up could not complete because of an infrastructure failure."""

    status_code = 500
