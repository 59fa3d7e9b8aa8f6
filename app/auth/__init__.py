"""
Authentication and authorization module for the Tag Taxonomy API.
Validates RS256 bearer tokens and enforces tenant isolation.
"""

from app.auth.jwt import validate_token, extract_user_claims, fetch_jwks, check_scope
from app.auth.permissions import (
    can_manage_platform,
    check_scope_access,
    check_tenant_access,
    is_platform_admin,
)
from app.auth.dependencies import (
    get_current_user,
    require_scope,
    CurrentUser,
    RequireRead,
    RequireWrite,
    RequireAdmin,
    RequireWorkflow,
)

__all__ = [
    # JWT functions
    "validate_token",
    "extract_user_claims",
    "fetch_jwks",
    "check_scope",
    # Permission functions
    "can_manage_platform",
    "check_scope_access",
    "check_tenant_access",
    "is_platform_admin",
    # Dependencies
    "get_current_user",
    "require_scope",
    # Type aliases
    "CurrentUser",
    "RequireRead",
    "RequireWrite",
    "RequireAdmin",
    "RequireWorkflow",
]
