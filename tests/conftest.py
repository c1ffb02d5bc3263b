from __future__ import annotations

import asyncio
from typing import Iterable, List, Optional

import pytest

from email_vault.api.dependencies import Services, build_services
from email_vault.backends.generation import GenerationBackend
from email_vault.backends.identity import InMemoryIdentityProvider
from email_vault.config import Settings
from email_vault.db.memory import InMemoryDBManager
from email_vault.errors import StorageError
from email_vault.models.generation import Completion, TokenUsage


class FakeBackend(GenerationBackend):
    """Returns canned text and remembers every prompt it was asked for."""

    def __init__(
        self,
        text: str = "Dear Sam,\n\nThank you for your help.\n\nBest,\nAlex",
        configured: bool = True,
        error: Optional[Exception] = None,
    ) -> None:
        self.text = text
        self._configured = configured
        self.error = error
        self.prompts: List[str] = []

    @property
    def configured(self) -> bool:
        return self._configured

    async def generate(self, prompt: str) -> Completion:
        self.prompts.append(prompt)
        # Yield so concurrent requests interleave the way network I/O would
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return Completion(
            text=self.text,
            model="gpt-3.5-turbo",
            usage=TokenUsage(prompt_tokens=12, completion_tokens=80, total_tokens=92),
        )


class FlakyDB(InMemoryDBManager):
    """In-memory store whose named operations raise StorageError."""

    def __init__(self, fail_on: Iterable[str] = ()) -> None:
        super().__init__()
        self.fail_on = set(fail_on)

    def _maybe_fail(self, op: str) -> None:
        if op in self.fail_on:
            raise StorageError(f"{op}: connection refused")

    async def get_credit_balance(self, user_id):
        self._maybe_fail("get_credit_balance")
        return await super().get_credit_balance(user_id)

    async def debit_credits(self, user_id, amount):
        self._maybe_fail("debit_credits")
        return await super().debit_credits(user_id, amount)

    async def add_history_record(self, record):
        self._maybe_fail("add_history_record")
        return await super().add_history_record(record)

    async def create_credit_balance(self, balance):
        self._maybe_fail("create_credit_balance")
        return await super().create_credit_balance(balance)

    async def add_signup_log(self, entry):
        self._maybe_fail("add_signup_log")
        return await super().add_signup_log(entry)

    async def get_signup_log_by_ip(self, ip_address):
        self._maybe_fail("get_signup_log_by_ip")
        return await super().get_signup_log_by_ip(ip_address)

    async def add_ledger_entry(self, entry):
        self._maybe_fail("add_ledger_entry")
        return await super().add_ledger_entry(entry)


class YieldingDB(InMemoryDBManager):
    """Suspends after every balance read, like a real network round trip."""

    async def get_credit_balance(self, user_id):
        balance = await super().get_credit_balance(user_id)
        await asyncio.sleep(0)
        return balance


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        OPENAI_API_KEY="sk-test",
        MONGO_URI=None,
        SUPABASE_URL=None,
        ALLOWED_SIGNUP_DOMAINS=["gmail.com"],
        SIGNUP_CREDITS=3,
        LEDGER_LOG_PATH=tmp_path / "ledger.log",
    )


@pytest.fixture
def identity() -> InMemoryIdentityProvider:
    return InMemoryIdentityProvider()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_services(settings, identity, backend):
    def _make(db=None, backend_override=None) -> Services:
        return build_services(
            settings,
            db=db if db is not None else InMemoryDBManager(),
            identity=identity,
            backend=backend_override or backend,
        )

    return _make
