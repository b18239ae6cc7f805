import logging
import uuid

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from planboard.db.client import get_db
from planboard.models.user import User
from planboard.schemas.auth import AuthUser
from planboard.core.security import TokenManager
from planboard.core.exceptions import AuthenticationException, ForbiddenException

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> AuthUser:
    """
    Dependency to get the current authenticated user.

    The token only identifies the caller; the system role always comes from
    the users table so a stale token cannot carry an old role.
    :param credentials: HTTP authorization credentials containing the token.
    :param db: Database session dependency.
    :return: AuthUser object representing the authenticated user.
    """
    if credentials is None:
        raise AuthenticationException()

    try:
        payload = TokenManager.decode_token(credentials.credentials)
    except ValueError:
        raise AuthenticationException("Token has expired or is invalid")

    if payload.get("type") != "access":
        raise AuthenticationException("Invalid token type")

    raw_user_id = payload.get("user_id")
    if not raw_user_id:
        raise AuthenticationException("Invalid token payload")

    try:
        user_id = uuid.UUID(str(raw_user_id))
    except ValueError:
        raise AuthenticationException("Invalid token payload")

    user = await db.get(User, user_id)
    if not user:
        logger.warning(f"Token presented for unknown user {user_id}")
        raise AuthenticationException("Unknown user")

    return AuthUser(
        id=str(user.id),
        email=user.email,
        name=user.name,
        role=user.role,
        is_active=user.is_active,
    )


async def get_current_active_user(
    current_user: AuthUser = Depends(get_current_user),
) -> AuthUser:
    """
    Dependency to get the current active user.
    :param current_user: Authenticated user from get_current_user dependency.
    :return: AuthUser object if the user is active.
    """
    if not current_user.is_active:
        raise ForbiddenException("User account is not active")
    return current_user
