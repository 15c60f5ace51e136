"""
FastAPI dependencies for authentication and authorization.

Identity comes from the bearer token's `sub` claim; the role is looked up
in the users domain by external id. Analytics endpoints accept admins and
verifiers, the scheduler trigger and record ingestion admins only.
"""

from typing import Callable, Iterable, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from impact_analytics.auth.jwt import decode_access_token
from impact_analytics.errors import NotAuthorized, Unauthenticated
from impact_analytics.models.enums import UserRole
from impact_analytics.storage import RecordStore, get_record_store
from impact_analytics.utils.logging import get_logger

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)

ANALYST_ROLES = (UserRole.ADMIN, UserRole.VERIFIER)
ADMIN_ROLES = (UserRole.ADMIN,)


class RoleResolver:
    """Looks up a caller's platform role by external id."""

    def __init__(self, record_store: RecordStore):
        self.record_store = record_store

    def role_of(self, user_id: str) -> Optional[UserRole]:
        user = self.record_store.user_by_external_id(user_id)
        return user.role if user is not None else None


def get_role_resolver() -> RoleResolver:
    return RoleResolver(get_record_store())


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Extract the caller's external id from the bearer token.

    Raises:
        Unauthenticated: If the token is missing, invalid or has no subject
    """
    if not credentials:
        logger.warning("auth_failed", reason="missing_token")
        raise Unauthenticated("Missing authentication token")

    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError as e:
        logger.warning("auth_failed", reason="invalid_token", error=str(e))
        raise Unauthenticated(f"Invalid authentication token: {str(e)}") from e

    user_id = payload.get("sub")
    if not user_id:
        logger.warning("auth_failed", reason="missing_subject")
        raise Unauthenticated("Invalid token payload")

    logger.debug("auth_success", user_id=user_id)
    return user_id


def require_roles(roles: Iterable[UserRole]) -> Callable:
    """
    Dependency factory admitting callers whose role is in `roles`.

    Returns the caller's external id.
    """
    allowed = tuple(roles)

    async def dependency(
        user_id: str = Depends(get_current_identity),
        resolver: RoleResolver = Depends(get_role_resolver),
    ) -> str:
        role = resolver.role_of(user_id)
        if role not in allowed:
            logger.warning(
                "authorization_denied",
                user_id=user_id,
                role=getattr(role, "value", role),
            )
            raise NotAuthorized(
                f"Role {getattr(role, 'value', 'unknown')} may not access this resource"
            )
        return user_id

    return dependency


require_analyst = require_roles(ANALYST_ROLES)
require_admin = require_roles(ADMIN_ROLES)
