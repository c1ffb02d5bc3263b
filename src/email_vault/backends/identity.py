"""
Identity providers.

The generation workflow only needs `get_user`; sign-up additionally needs
`email_registered` and `create_user`. Every failure is reported as
`IdentityProviderError`.
"""

from __future__ import annotations

import logging
import secrets
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from uuid import uuid4

import httpx

from ..errors import IdentityProviderError
from ..models.user import User


logger = logging.getLogger(__name__)


class IdentityProvider(ABC):
    @abstractmethod
    async def get_user(self, token: str) -> User:
        """Resolve a bearer token to a user."""

    @abstractmethod
    async def email_registered(self, email: str) -> bool: ...

    @abstractmethod
    async def create_user(self, email: str, password: str) -> User:
        """Create a pre-confirmed account."""

    async def aclose(self) -> None:
        """Release network resources, if any."""


class SupabaseIdentityProvider(IdentityProvider):
    """
    Talks to a Supabase (GoTrue) auth server over its REST API.

    Token checks use the anon key; admin calls use the service-role key.
    """

    page_size = 1000

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        service_role_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.service_role_key = service_role_key
        self._client = client
        self._timeout = timeout

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _admin_headers(self) -> Dict[str, str]:
        if not self.service_role_key:
            raise IdentityProviderError("Identity provider admin key is not configured")
        return {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {self.service_role_key}",
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}/auth/v1{path}"
        try:
            resp = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise IdentityProviderError(f"Identity provider unreachable: {exc}") from exc

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.info("Identity provider %s %s -> %s: %s", method, path, resp.status_code, message)
            raise IdentityProviderError(message, status_code=resp.status_code)
        try:
            return resp.json()
        except ValueError as exc:
            raise IdentityProviderError(
                "Identity provider returned invalid JSON", status_code=resp.status_code
            ) from exc

    async def get_user(self, token: str) -> User:
        data = await self._request(
            "GET",
            "/user",
            headers={"apikey": self.anon_key, "Authorization": f"Bearer {token}"},
        )
        return _to_user(data)

    async def email_registered(self, email: str) -> bool:
        wanted = email.strip().lower()
        page = 1
        while True:
            data = await self._request(
                "GET",
                "/admin/users",
                headers=self._admin_headers(),
                params={"page": page, "per_page": self.page_size},
            )
            users = data.get("users", []) if isinstance(data, dict) else []
            if any((u.get("email") or "").lower() == wanted for u in users):
                return True
            if len(users) < self.page_size:
                return False
            page += 1

    async def create_user(self, email: str, password: str) -> User:
        data = await self._request(
            "POST",
            "/admin/users",
            headers=self._admin_headers(),
            json={"email": email, "password": password, "email_confirm": True},
        )
        # Some server versions wrap the user object
        if isinstance(data, dict) and isinstance(data.get("user"), dict):
            data = data["user"]
        return _to_user(data)


class InMemoryIdentityProvider(IdentityProvider):
    """
    Identity provider kept in process memory. Used for tests and for local
    runs without an auth server.
    """

    def __init__(self) -> None:
        self._users: Dict[str, User] = {}
        self._passwords: Dict[str, str] = {}
        self._tokens: Dict[str, str] = {}

    def add_user(self, email: str, user_id: Optional[str] = None) -> User:
        user = User(id=user_id or uuid4().hex, email=email)
        self._users[user.id] = user
        return user

    def issue_token(self, user_id: str) -> str:
        if user_id not in self._users:
            raise KeyError(user_id)
        token = secrets.token_urlsafe(16)
        self._tokens[token] = user_id
        return token

    def revoke_token(self, token: str) -> None:
        self._tokens.pop(token, None)

    async def get_user(self, token: str) -> User:
        user_id = self._tokens.get(token)
        if user_id is None:
            raise IdentityProviderError("invalid token", status_code=401)
        return self._users[user_id]

    async def email_registered(self, email: str) -> bool:
        wanted = email.strip().lower()
        return any((u.email or "").lower() == wanted for u in self._users.values())

    async def create_user(self, email: str, password: str) -> User:
        if await self.email_registered(email):
            raise IdentityProviderError(
                "A user with this email address has already been registered",
                status_code=422,
            )
        user = self.add_user(email)
        self._passwords[user.id] = password
        return user


def _to_user(data: Any) -> User:
    if not isinstance(data, dict) or not data.get("id"):
        raise IdentityProviderError("Identity provider returned no user")
    return User(id=str(data["id"]), email=data.get("email"))


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {resp.status_code}"
