"""
Auth dependencies for the QuickAI API.

Validates the Clerk bearer JWT, then resolves plan and free usage through
the injected identity store.
"""
import logging

import httpx
import jwt
from fastapi import Depends, Request

from quickai.core.clerk_auth import plan_from_claims, verify_jwt_token
from quickai.core.errors import AuthError
from quickai.core.logging import get_request_id
from quickai.features.identity.store import IdentityStore, get_identity_store
from quickai.models.user import UserAccount

logger = logging.getLogger("quickai")


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Missing Authorization bearer token")
    return token.strip()


def get_session_claims(request: Request) -> dict:
    """Verify the bearer token once per request and cache the claims on request.state."""
    cached = getattr(request.state, "session_claims", None)
    if cached is not None:
        return cached

    token = _bearer_token(request)
    try:
        claims = verify_jwt_token(token)
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired")
    except jwt.PyJWTError as e:
        logger.debug(f"Invalid token: {e}")
        raise AuthError("Invalid token")
    except httpx.HTTPError as e:
        logger.warning(f"Failed to fetch Clerk JWKS: {e}")
        raise AuthError("Token verification failed")

    if not claims.get("sub"):
        raise AuthError("Token has no subject")

    request.state.session_claims = claims
    return claims


def get_current_user_id(claims: dict = Depends(get_session_claims)) -> str:
    return claims["sub"]


async def get_current_account(
    claims: dict = Depends(get_session_claims),
    store: IdentityStore = Depends(get_identity_store),
) -> UserAccount:
    """
    Resolve the caller's plan and free usage.

    The session's plan claim wins over stored metadata; usage always comes
    from the identity store.
    """
    user_id = claims["sub"]
    account = await store.get(user_id)
    claimed_plan = plan_from_claims(claims)
    if claimed_plan is not None and claimed_plan != account.plan:
        account = account.model_copy(update={"plan": claimed_plan})

    logger.debug(
        "auth.resolved",
        extra={
            "request_id": get_request_id(),
            "user_id": user_id,
            "plan": account.plan.value,
            "free_usage": account.free_usage,
        },
    )
    return account
