"""JWT authentication and role-based authorization."""

from impact_analytics.auth.dependencies import (
    RoleResolver,
    get_current_identity,
    require_admin,
    require_analyst,
)
from impact_analytics.auth.jwt import create_access_token, decode_access_token

__all__ = [
    "RoleResolver",
    "create_access_token",
    "decode_access_token",
    "get_current_identity",
    "require_admin",
    "require_analyst",
]
