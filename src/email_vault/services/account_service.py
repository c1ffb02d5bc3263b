from __future__ import annotations

import logging
from typing import Sequence

from ..backends.identity import IdentityProvider
from ..db.base import BaseDBManager
from ..errors import IdentityProviderError, SignupFailed, SignupRejected, StorageError
from ..models.signup import SignupLog
from ..models.user import User
from ..utils import email_domain, mask_email
from .credit_service import CreditService


logger = logging.getLogger(__name__)


class AccountService:
    """
    Sign-up with an email-domain allowlist and one sign-up per client address.

    Creating the identity is the only step that must succeed; the starting
    credit balance and the sign-up log are written best-effort afterwards.
    """

    def __init__(
        self,
        db: BaseDBManager,
        identity: IdentityProvider,
        credits: CreditService,
        allowed_domains: Sequence[str] = ("gmail.com",),
        signup_credits: int = 3,
    ) -> None:
        self._db = db
        self._identity = identity
        self._credits = credits
        self._allowed_domains = {d.lower().lstrip("@") for d in allowed_domains}
        self.signup_credits = signup_credits

    def domain_allowed(self, email: str) -> bool:
        return email_domain(email) in self._allowed_domains

    def _domain_message(self) -> str:
        listed = ", ".join(f"@{d}" for d in sorted(self._allowed_domains))
        return f"Only {listed} addresses are allowed"

    async def signup(self, email: str, password: str, ip_address: str) -> User:
        email = email.strip()
        if not self.domain_allowed(email):
            raise SignupRejected(self._domain_message())

        try:
            existing = await self._db.get_signup_log_by_ip(ip_address)
        except StorageError as exc:
            logger.exception("Error checking sign-up address")
            raise SignupFailed("Failed to verify IP address") from exc
        if existing is not None:
            raise SignupRejected("Signup from this IP is already registered")

        try:
            if await self._identity.email_registered(email):
                raise SignupRejected("Email already registered")
            user = await self._identity.create_user(email, password)
        except IdentityProviderError as exc:
            logger.error("Error creating user %s: %s", mask_email(email), exc.message)
            raise SignupFailed(exc.message) from exc

        try:
            await self._credits.provision(user.id, self.signup_credits)
        except StorageError:
            logger.exception("Error provisioning credits for %s", user.id)

        try:
            await self._db.add_signup_log(SignupLog(ip_address=ip_address, email=email))
        except StorageError:
            logger.exception("Error saving sign-up address for %s", user.id)

        logger.info("User registered: %s", mask_email(email))
        return user
