from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ---------- Generation backend ----------
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-3.5-turbo"
    OPENAI_TEMPERATURE: float = 0.7
    OPENAI_MAX_TOKENS: int = 400

    # ---------- Storage ----------
    # Without a URI the in-memory DB manager is used.
    MONGO_URI: Optional[str] = None
    MONGO_DB: str = "email_vault"

    # ---------- Identity provider ----------
    SUPABASE_URL: Optional[str] = None
    SUPABASE_ANON_KEY: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None

    # ---------- Sign-up ----------
    ALLOWED_SIGNUP_DOMAINS: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["gmail.com"]
    )
    SIGNUP_CREDITS: int = 3

    # ---------- Logging ----------
    LEDGER_LOG_PATH: Path = Path("logs/credit_ledger.log")
    LOG_LEVEL: str = "INFO"

    @field_validator("ALLOWED_SIGNUP_DOMAINS", mode="before")
    @classmethod
    def _split_domains(cls, value):
        # Accept "gmail.com,example.org" from the environment as well as JSON lists
        if isinstance(value, str):
            value = json.loads(value) if value.strip().startswith("[") else value.split(",")
        return [str(d).strip().lower().lstrip("@") for d in value if str(d).strip()]

    @field_validator("SIGNUP_CREDITS")
    @classmethod
    def _non_negative_credits(cls, value: int) -> int:
        if value < 0:
            raise ValueError("SIGNUP_CREDITS must be >= 0")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
