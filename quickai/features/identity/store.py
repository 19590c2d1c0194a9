"""
Identity store: read plan/usage for a user and request usage increments.

The identity provider (Clerk) owns this state. Callers only ever reach it
through an IdentityStore so tests and local development can swap in the
in-memory implementation.

Clerk metadata has no compare-and-set, so ``increment`` is a read followed by
a write. Two concurrent increments for the same user can collapse into one.
"""
import logging
import threading
from typing import Dict, Optional, Protocol

import httpx
from fastapi import Request

from quickai.core.config import Settings, settings as default_settings
from quickai.core.errors import AuthError, ProviderError, ProviderTimeoutError, ProviderUnavailableError
from quickai.models.user import Plan, UserAccount

logger = logging.getLogger("quickai")

FREE_USAGE_KEY = "free_usage"
PLAN_KEY = "plan"


class IdentityStore(Protocol):
    async def get(self, user_id: str) -> UserAccount:
        ...

    async def increment(self, user_id: str) -> int:
        ...


def _coerce_usage(value) -> int:
    try:
        usage = int(value)
    except (TypeError, ValueError):
        return 0
    return max(usage, 0)


class InMemoryIdentityStore:
    """Process-local identity store for development and tests."""

    def __init__(self, default_plan: Plan = Plan.FREE):
        self.default_plan = default_plan
        self._accounts: Dict[str, UserAccount] = {}
        self._lock = threading.Lock()

    def set_account(self, user_id: str, plan: Plan = Plan.FREE, free_usage: int = 0) -> UserAccount:
        account = UserAccount(user_id=user_id, plan=plan, free_usage=free_usage)
        with self._lock:
            self._accounts[user_id] = account
        return account

    def clear(self) -> None:
        with self._lock:
            self._accounts.clear()

    async def get(self, user_id: str) -> UserAccount:
        with self._lock:
            account = self._accounts.get(user_id)
            if account is None:
                account = UserAccount(user_id=user_id, plan=self.default_plan, free_usage=0)
                self._accounts[user_id] = account
            return account

    async def increment(self, user_id: str) -> int:
        with self._lock:
            current = self._accounts.get(user_id) or UserAccount(user_id=user_id, plan=self.default_plan)
            updated = current.model_copy(update={"free_usage": current.free_usage + 1})
            self._accounts[user_id] = updated
        return updated.free_usage


class ClerkIdentityStore:
    """Reads and updates user metadata through the Clerk Backend API."""

    name = "clerk"

    def __init__(
        self,
        secret_key: Optional[str],
        api_base: str = "https://api.clerk.com/v1",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not secret_key:
            raise ProviderUnavailableError("CLERK_SECRET_KEY is not configured", provider=self.name)
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> dict:
        url = f"{self.api_base}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, headers=self._headers(), json=json)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"Identity provider timed out: {e}", provider=self.name)
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(f"Identity provider unreachable: {e}", provider=self.name)

        if response.status_code == 404:
            raise AuthError("Unknown user")
        if response.status_code >= 300:
            raise ProviderError(
                f"Identity provider returned {response.status_code}",
                provider=self.name,
            )
        return response.json()

    async def get(self, user_id: str) -> UserAccount:
        user = await self._request("GET", f"/users/{user_id}")
        public = user.get("public_metadata") or {}
        private = user.get("private_metadata") or {}
        return UserAccount(
            user_id=user_id,
            plan=Plan.parse(public.get(PLAN_KEY)),
            free_usage=_coerce_usage(private.get(FREE_USAGE_KEY)),
        )

    async def increment(self, user_id: str) -> int:
        account = await self.get(user_id)
        new_value = account.free_usage + 1
        await self._request(
            "PATCH",
            f"/users/{user_id}/metadata",
            json={"private_metadata": {FREE_USAGE_KEY: new_value}},
        )
        return new_value


def build_identity_store(cfg: Settings = None) -> IdentityStore:
    cfg = cfg or default_settings
    backend = (cfg.IDENTITY_BACKEND or "clerk").lower()
    if backend == "memory":
        logger.warning("using in-memory identity store; usage counters reset on restart")
        return InMemoryIdentityStore()
    return ClerkIdentityStore(cfg.CLERK_SECRET_KEY, api_base=cfg.CLERK_API_BASE)


def get_identity_store(request: Request) -> IdentityStore:
    """FastAPI dependency: the identity store built at startup."""
    store = getattr(request.app.state, "identity_store", None)
    if store is None:
        store = build_identity_store()
        request.app.state.identity_store = store
    return store
