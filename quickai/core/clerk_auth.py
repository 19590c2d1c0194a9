"""
Clerk session JWT verification.

Handles:
- HS256 verification with CLERK_JWT_SECRET (development/testing)
- RS256 verification against the instance JWKS (production)
- Plan extraction from session claims
- Test helpers for deterministic testing (no network)
"""
import json
import time
from typing import Any, Callable, Dict, Optional

import httpx
import jwt
from jwt.algorithms import RSAAlgorithm

from quickai.core.config import settings
from quickai.models.user import Plan


# JWKS override (tests) and cache keyed by issuer/jwks_url
_jwks_provider_override: Optional[Callable[[str, str], Dict[str, Any]]] = None
_jwks_cache: Dict[str, Dict[str, Any]] = {}

TEST_JWT_SECRET = "test-secret-key-for-quickai"


def set_jwks_provider_for_tests(provider: Optional[Callable[[str, str], Dict[str, Any]]]) -> None:
    """Set or clear JWKS provider override for deterministic testing (no network)."""
    global _jwks_provider_override
    _jwks_provider_override = provider
    _jwks_cache.clear()


def _default_fetch_jwks(issuer: str, jwks_url: str) -> Dict[str, Any]:
    response = httpx.get(jwks_url, timeout=5.0)
    response.raise_for_status()
    return response.json()


def get_jwks(issuer: str, jwks_url: Optional[str] = None) -> Dict[str, Any]:
    """Fetch JWKS using override (tests) or default fetcher. Cached per issuer/url."""
    resolved_url = jwks_url or f"{issuer.rstrip('/')}/.well-known/jwks.json"
    cache_key = f"{issuer}|{resolved_url}"

    if cache_key in _jwks_cache:
        return _jwks_cache[cache_key]

    if _jwks_provider_override:
        jwks = _jwks_provider_override(issuer, resolved_url)
    else:
        jwks = _default_fetch_jwks(issuer, resolved_url)

    _jwks_cache[cache_key] = jwks
    return jwks


def verify_jwt_token(token: str) -> Dict[str, Any]:
    """
    Verify a Clerk session JWT and return its claims.

    Raises jwt.PyJWTError on an invalid token and httpx.HTTPError when the
    JWKS cannot be fetched.
    """
    secret = settings.CLERK_JWT_SECRET
    if secret:
        return jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            options={"verify_signature": True, "verify_exp": True, "verify_aud": False},
        )

    issuer = settings.CLERK_ISSUER
    jwks_url = settings.CLERK_JWKS_URL
    if not issuer and not jwks_url:
        raise jwt.PyJWTError("CLERK_ISSUER or CLERK_JWKS_URL must be configured for RS256 verification")

    jwks = get_jwks(issuer or "https://clerk.invalid", jwks_url)

    kid = jwt.get_unverified_header(token).get("kid")
    if not kid:
        raise jwt.PyJWTError("Token missing 'kid' in header")

    matching_key = next((key for key in jwks.get("keys", []) if key.get("kid") == kid), None)
    if not matching_key:
        raise jwt.PyJWTError(f"Key ID '{kid}' not found in JWKS")

    public_key = RSAAlgorithm.from_jwk(json.dumps(matching_key))
    return jwt.decode(
        token,
        public_key,
        algorithms=["RS256"],
        audience=settings.CLERK_AUDIENCE,
        issuer=issuer,
        options={"verify_signature": True, "verify_exp": True, "verify_aud": bool(settings.CLERK_AUDIENCE)},
    )


def plan_from_claims(claims: Dict[str, Any]) -> Optional[Plan]:
    """
    Resolve the subscription plan carried by the session, if any.

    Clerk billing puts the active plan in the ``pla`` claim ("u:premium");
    custom session templates may expose ``public_metadata.plan`` instead.
    Returns None when the token carries no plan information.
    """
    pla = claims.get("pla")
    if pla:
        return Plan.parse(pla)

    public_metadata = claims.get("public_metadata")
    if isinstance(public_metadata, dict) and public_metadata.get("plan"):
        return Plan.parse(public_metadata["plan"])

    return None


# ============================================================================
# Test Helpers (deterministic, no network)
# ============================================================================

def create_test_jwt(
    sub: str = "user_test_123",
    plan: Optional[str] = None,
    exp_minutes: int = 60,
    secret: str = TEST_JWT_SECRET,
    algorithm: str = "HS256",
    private_key: Optional[str] = None,
    kid: Optional[str] = None,
    issuer: Optional[str] = None,
    audience: Optional[str] = None,
) -> str:
    """
    Create a signed session token for tests.

    Supports HS256 (default) and RS256 (for JWKS-based tests). ``plan`` is
    written to the ``pla`` claim the way Clerk billing does.
    """
    now = int(time.time())
    payload: Dict[str, Any] = {
        "sub": sub,
        "iat": now,
        "exp": now + (exp_minutes * 60),
        "iss": issuer or settings.CLERK_ISSUER or "https://test.clerk.accounts.dev",
        "aud": audience or settings.CLERK_AUDIENCE or "test-audience",
    }
    if plan:
        payload["pla"] = f"u:{plan}"

    headers = {"kid": kid} if kid else None
    key = private_key if algorithm == "RS256" and private_key else secret
    return jwt.encode(payload, key, algorithm=algorithm, headers=headers)
