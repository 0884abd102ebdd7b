"""
Authentication dependencies for FastAPI.
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from photo_manager.dependencies.services import ServiceContainer, get_container
from photo_manager.models.user import User
from photo_manager.utils.security import decode_access_token

logger = logging.getLogger("photo_manager.auth")

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    container: ServiceContainer = Depends(get_container),
) -> User:
    """
    Dependency to get the current authenticated user (guests included).

    Raises:
        HTTPException: If token is missing, invalid, or user not found
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not credentials:
        logger.warning("Auth failed", extra={"event": "auth", "reason": "no_token"})
        raise credentials_exception

    token_payload = decode_access_token(credentials.credentials, container.settings)

    if token_payload is None:
        logger.warning("Auth failed", extra={"event": "auth", "reason": "invalid_or_expired_token"})
        raise credentials_exception

    user = await container.users.find_by_id(token_payload.sub)

    if user is None:
        logger.warning(
            "Auth failed",
            extra={"event": "auth", "reason": "user_not_found", "user_id": token_payload.sub},
        )
        raise credentials_exception

    if not user.is_active:
        logger.warning("Inactive user rejected", extra={"event": "auth", "reason": "inactive", "user_id": user.id})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user",
        )

    return user


async def get_registered_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Dependency for endpoints guests may not use (uploads).

    Raises:
        HTTPException: If the user is an anonymous guest
    """
    if current_user.is_anonymous:
        logger.warning("Guest rejected", extra={"event": "auth", "reason": "anonymous", "user_id": current_user.id})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Guests cannot upload photos. Please register or log in.",
        )
    return current_user


async def get_admin_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Dependency for administrator endpoints.

    Raises:
        HTTPException: If the user is not an administrator
    """
    if not current_user.is_admin:
        logger.warning("Admin access denied", extra={"event": "auth", "user_id": current_user.id})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required",
        )
    return current_user
