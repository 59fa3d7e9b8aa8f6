"""
JWT token validation with JWKS caching.
Tokens are issued by the marketplace identity provider (RS256).
"""

import time
from typing import Any

import httpx
from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError

from app.config import get_settings
from app.core.exceptions import UnauthorizedException

settings = get_settings()


# JWKS cache
_jwks_cache: dict[str, Any] = {}
_jwks_cache_time: float = 0


async def fetch_jwks() -> dict[str, Any]:
    """
    Fetch the JSON Web Key Set from the identity provider.
    Cached for JWKS_CACHE_TTL seconds.

    Returns:
        JWKS dictionary with public keys

    Raises:
        UnauthorizedException: If JWKS cannot be fetched
    """
    global _jwks_cache, _jwks_cache_time

    current_time = time.time()
    if _jwks_cache and (current_time - _jwks_cache_time) < settings.JWKS_CACHE_TTL:
        return _jwks_cache

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                settings.AUTH_JWKS_URL,
                timeout=10.0,
            )
            response.raise_for_status()

            _jwks_cache = response.json()
            _jwks_cache_time = current_time

            return _jwks_cache

    except httpx.HTTPError as e:
        # Serve a stale key set rather than locking everyone out
        if _jwks_cache:
            return _jwks_cache
        raise UnauthorizedException(f"Failed to fetch JWKS: {str(e)}")


def get_rsa_key(jwks: dict[str, Any], kid: str) -> dict[str, Any] | None:
    """Get RSA public key from JWKS by key ID."""
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return {
                "kty": key.get("kty"),
                "kid": key.get("kid"),
                "use": key.get("use"),
                "n": key.get("n"),
                "e": key.get("e"),
            }
    return None


async def validate_token(token: str) -> dict[str, Any]:
    """
    Validate a bearer token.

    Verifies signature, expiry, issuer and audience.

    Args:
        token: JWT token string

    Returns:
        Decoded token claims

    Raises:
        UnauthorizedException: If token is invalid
    """
    try:
        unverified_header = jwt.get_unverified_header(token)
        kid = unverified_header.get("kid")

        if not kid:
            raise UnauthorizedException("Token missing key ID")

        jwks = await fetch_jwks()
        rsa_key = get_rsa_key(jwks, kid)

        if not rsa_key:
            raise UnauthorizedException("Unable to find appropriate key")

        return jwt.decode(
            token,
            rsa_key,
            algorithms=["RS256"],
            audience=settings.AUTH_AUDIENCE,
            issuer=settings.AUTH_ISSUER,
        )

    except ExpiredSignatureError:
        raise UnauthorizedException("Token has expired")
    except JWTError as e:
        raise UnauthorizedException(f"Invalid token: {str(e)}")


def extract_user_claims(payload: dict[str, Any]) -> dict[str, Any]:
    """
    Extract user claims from a validated JWT payload.

    Expected claims:
    - sub: User unique identifier
    - email: User email
    - tenant_id: Tenant the user belongs to (absent for platform staff)
    - scope: Space-separated granted scopes

    Args:
        payload: Decoded JWT payload

    Returns:
        Normalized user claims dictionary
    """
    tenant_id = payload.get("tenant_id")

    return {
        "user_id": payload.get("sub"),
        "name": payload.get("name"),
        "email": payload.get("email"),
        "tenant_id": int(tenant_id) if tenant_id is not None else None,
        "roles": payload.get("roles", []),
        "scopes": payload.get("scope", "").split() if payload.get("scope") else [],
    }


def check_scope(user_claims: dict[str, Any], required_scope: str) -> bool:
    """Check if user has the required scope (e.g. "tags:write")."""
    return required_scope in user_claims.get("scopes", [])
