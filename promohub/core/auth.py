"""
Authentication utilities for the application.

This module provides JWT-based authentication. The token only establishes
identity; roles are read from the ``users`` table on every request.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from promohub.core.config import settings
from promohub.core.database import get_db
from promohub.models.enums import UserRole
from promohub.models.users import User

logger = logging.getLogger(__name__)

# Security scheme for JWT tokens
security = HTTPBearer(auto_error=False)


class TokenData(BaseModel):
    """Token data model."""
    username: str | None = None
    user_id: str | None = None


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Data to encode in the token (``sub`` and ``user_id``)
        expires_delta: Token expiration time

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(hours=settings.jwt_expiration_hours)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> TokenData | None:
    """
    Verify and decode a JWT token.

    Args:
        token: JWT token to verify

    Returns:
        TokenData if valid, None if invalid
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        username: str = payload.get("sub")
        user_id: str = payload.get("user_id") or username

        if username is None:
            return None

        return TokenData(username=username, user_id=user_id)
    except JWTError as e:
        logger.warning(f"Token verification failed: {e}")
        return None


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security)
) -> UUID:
    """
    Get the authenticated user's ID from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token_data = verify_token(credentials.credentials)

    user_id = None
    if token_data is not None:
        try:
            user_id = UUID(token_data.user_id)
        except ValueError:
            logger.warning("Token subject is not a user ID")

    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


async def get_current_user(
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Load the authenticated, active user."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user or user.status != "active":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_role(*roles: UserRole) -> Callable[..., Awaitable[User]]:
    """
    Build a dependency that admits only users holding one of ``roles``.

    Example:
        ```python
        @router.post("/qr/confirm")
        async def confirm(merchant: User = Depends(require_role(UserRole.MERCHANT))):
            ...
        ```
    """
    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            logger.warning(f"User {user.id} with role {user.role.value} denied; requires {[r.value for r in roles]}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden",
            )
        return user

    return dependency


# Type aliases for role-gated users
CurrentUser = Annotated[User, Depends(get_current_user)]
RegularUser = Annotated[User, Depends(require_role(UserRole.USER))]
MerchantUser = Annotated[User, Depends(require_role(UserRole.MERCHANT))]
AdminUser = Annotated[User, Depends(require_role(UserRole.ADMIN))]
