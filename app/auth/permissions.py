"""
Scope-level permission checks.

Platform staff (platform:admin) may act in any tenant. Everyone else is
confined to the tenant named in their token.
"""

from typing import Any

from app.core.exceptions import ForbiddenException
from app.services.inheritance import ScopeContext

PLATFORM_ADMIN_SCOPE = "platform:admin"
TAGS_ADMIN_SCOPE = "tags:admin"
TAGS_WRITE_SCOPE = "tags:write"
TAGS_READ_SCOPE = "tags:read"


def is_platform_admin(user_claims: dict[str, Any]) -> bool:
    return PLATFORM_ADMIN_SCOPE in user_claims.get("scopes", [])


def can_manage_platform(user_claims: dict[str, Any]) -> bool:
    """Platform tags and inheritance grants need tags:admin or platform:admin."""
    scopes = user_claims.get("scopes", [])
    return TAGS_ADMIN_SCOPE in scopes or PLATFORM_ADMIN_SCOPE in scopes


def check_tenant_access(user_claims: dict[str, Any], tenant_id: int) -> bool:
    """
    Check that a user may act within a tenant.

    Raises:
        ForbiddenException: If the token belongs to another tenant
    """
    if is_platform_admin(user_claims):
        return True

    if user_claims.get("tenant_id") == tenant_id:
        return True

    raise ForbiddenException(
        message="Access to this tenant is not allowed",
        details={"tenantId": tenant_id},
    )


def check_scope_access(
    user_claims: dict[str, Any],
    ctx: ScopeContext,
    write: bool = False,
) -> bool:
    """
    Check access to a whole scope, as bulk operations need.

    Reads need tags:read; platform managers may read the platform scope
    and platform admins any scope without it.

    Raises:
        ForbiddenException: If access is denied
    """
    scopes = user_claims.get("scopes", [])

    if ctx.is_platform:
        if write and not can_manage_platform(user_claims):
            raise ForbiddenException(
                message="Managing platform tags requires the tags:admin scope",
                details={"required": TAGS_ADMIN_SCOPE},
            )
        if not write and TAGS_READ_SCOPE not in scopes and not can_manage_platform(user_claims):
            raise ForbiddenException(
                message="Reading tags requires the tags:read scope",
                details={"required": TAGS_READ_SCOPE},
            )
        return True

    required = TAGS_WRITE_SCOPE if write else TAGS_READ_SCOPE
    if required not in scopes and not is_platform_admin(user_claims):
        verb = "Modifying" if write else "Reading"
        raise ForbiddenException(
            message=f"{verb} tags requires the {required} scope",
            details={"required": required},
        )
    return check_tenant_access(user_claims, ctx.tenant_id)
