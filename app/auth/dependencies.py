"""
Authentication dependencies for FastAPI.
Provides dependency injection for authenticated endpoints.
"""

from typing import Annotated, Any

from fastapi import Depends, Header, Request

from app.config import get_settings
from app.core.exceptions import ForbiddenException, UnauthorizedException
from app.auth.jwt import validate_token, extract_user_claims, check_scope
from app.auth.permissions import PLATFORM_ADMIN_SCOPE

settings = get_settings()

ALL_SCOPES = [
    "tags:read",
    "tags:write",
    "tags:admin",
    "workflows:execute",
    PLATFORM_ADMIN_SCOPE,
]


def dev_user_claims() -> dict[str, Any]:
    """Claims injected in development mode."""
    return {
        "user_id": settings.DEV_USER_ID,
        "name": "Development User",
        "email": settings.DEV_USER_EMAIL,
        "tenant_id": settings.DEV_USER_TENANT_ID,
        "roles": ["platform_admin"],
        "scopes": list(ALL_SCOPES),
    }


async def get_current_user(
    request: Request,
    authorization: str | None = Header(default=None),
) -> dict[str, Any]:
    """
    Dependency to get current authenticated user.

    In development mode (DEV_MODE=true), returns a user holding every scope.
    Otherwise validates the bearer token from the Authorization header.

    Raises:
        UnauthorizedException: If authentication fails
    """
    if settings.DEV_MODE:
        user_claims = dev_user_claims()
        request.state.user = user_claims
        return user_claims

    if not authorization:
        raise UnauthorizedException("Authorization header required")

    # Extract token from "Bearer <token>" format
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise UnauthorizedException("Invalid authorization header format")

    payload = await validate_token(parts[1])
    user_claims = extract_user_claims(payload)

    request.state.user = user_claims

    return user_claims


def require_scope(required_scope: str):
    """
    Dependency factory to require a specific scope.

    Usage:
        @router.post("/tags")
        async def create_tag(
            user: dict = Depends(require_scope("tags:write"))
        ):
            ...

    Args:
        required_scope: Required scope (e.g., "tags:read", "tags:write")

    Returns:
        Dependency function
    """
    async def _check_scope(
        user: dict[str, Any] = Depends(get_current_user),
    ) -> dict[str, Any]:
        if not check_scope(user, required_scope):
            raise ForbiddenException(
                f"Required scope '{required_scope}' not present in token",
                details={"required": required_scope},
            )
        return user

    return _check_scope


# Type aliases for dependency injection
CurrentUser = Annotated[dict[str, Any], Depends(get_current_user)]

# Scoped dependencies
RequireRead = Annotated[dict[str, Any], Depends(require_scope("tags:read"))]
RequireWrite = Annotated[dict[str, Any], Depends(require_scope("tags:write"))]
RequireAdmin = Annotated[dict[str, Any], Depends(require_scope("tags:admin"))]
RequireWorkflow = Annotated[dict[str, Any], Depends(require_scope("workflows:execute"))]
