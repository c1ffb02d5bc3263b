from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..backends.generation import GenerationBackend, OpenAIGenerationBackend
from ..backends.identity import (
    IdentityProvider,
    InMemoryIdentityProvider,
    SupabaseIdentityProvider,
)
from ..config import Settings
from ..db.base import BaseDBManager
from ..db.memory import InMemoryDBManager
from ..db.mongo import MongoDBManager
from ..errors import IdentityProviderError
from ..logging.ledger_logger import LedgerLogger
from ..models.user import User
from ..services.account_service import AccountService
from ..services.credit_service import CreditService
from ..services.generation_service import GenerationService
from ..services.history_service import HistoryService


logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


@dataclass
class Services:
    db: BaseDBManager
    identity: IdentityProvider
    credits: CreditService
    history: HistoryService
    generation: GenerationService
    accounts: AccountService


def _create_db_manager(settings: Settings) -> BaseDBManager:
    if settings.MONGO_URI:
        return MongoDBManager.from_client_uri(settings.MONGO_URI, settings.MONGO_DB)
    logger.warning("MONGO_URI not set, using the in-memory store")
    return InMemoryDBManager()


def _create_identity_provider(settings: Settings) -> IdentityProvider:
    if settings.SUPABASE_URL and settings.SUPABASE_ANON_KEY:
        return SupabaseIdentityProvider(
            base_url=settings.SUPABASE_URL,
            anon_key=settings.SUPABASE_ANON_KEY,
            service_role_key=settings.SUPABASE_SERVICE_ROLE_KEY,
        )
    logger.warning("SUPABASE_URL not set, using the in-memory identity provider")
    return InMemoryIdentityProvider()


def build_services(
    settings: Settings,
    db: Optional[BaseDBManager] = None,
    identity: Optional[IdentityProvider] = None,
    backend: Optional[GenerationBackend] = None,
) -> Services:
    db = db if db is not None else _create_db_manager(settings)
    identity = identity if identity is not None else _create_identity_provider(settings)
    if backend is None:
        backend = OpenAIGenerationBackend(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            temperature=settings.OPENAI_TEMPERATURE,
            max_tokens=settings.OPENAI_MAX_TOKENS,
        )

    ledger = LedgerLogger(db=db, file_path=settings.LEDGER_LOG_PATH)
    credits = CreditService(db=db, ledger=ledger)
    history = HistoryService(db=db, ledger=ledger)
    return Services(
        db=db,
        identity=identity,
        credits=credits,
        history=history,
        generation=GenerationService(
            backend=backend, identity=identity, credits=credits, history=history
        ),
        accounts=AccountService(
            db=db,
            identity=identity,
            credits=credits,
            allowed_domains=settings.ALLOWED_SIGNUP_DOMAINS,
            signup_credits=settings.SIGNUP_CREDITS,
        ),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    services: Services = Depends(get_services),
) -> User:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated"
        )
    try:
        return await services.identity.get_user(credentials.credentials)
    except IdentityProviderError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token"
        ) from exc


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown-ip"
