"""Security utilities for password hashing and handling JWT session tokens."""

import logging
from datetime import datetime, timedelta
from typing import Optional
import bcrypt
import jwt
from .config import settings
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from app.constants.constants import UserRole
from app.core.database import aget_db
from app.core.errors import ForbiddenError, UnauthorizedError
from app.models.user import User

logger = logging.getLogger(__name__)

AUTH_COOKIE_NAME = "auth_token"


def hash_password(password: str) -> str:
    """Hash a plain text password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    """Check a plain text password against its bcrypt hash."""
    if not password or not hashed_password:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # malformed hash
        return False


def create_jwt_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Creates a JWT (JSON Web Token) with the provided data and expiration time.

    Args:
        data (dict): The payload data to be encoded in the JWT.
        expires_delta (timedelta, optional): The time until the token expires.
            Defaults to ACCESS_TOKEN_EXPIRE_MINUTES.

    Returns:
        str: The encoded JWT string.

    Note:
        The token includes standard JWT claims:
        - exp (expiration time)
        - iat (issued at time)
    """
    expires_delta = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = data.copy()
    now = datetime.utcnow()
    to_encode.update({
        "exp": now + expires_delta,
        "iat": now
    })
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_jwt_token(token: str) -> dict:
    """Decodes and validates a JWT token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or improperly formatted.
    """
    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[settings.ALGORITHM]
    )


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(aget_db)
) -> User:
    """
    Dependency to get current authenticated user from JWT cookie
    Raises 401 if not authenticated
    """
    token = request.cookies.get(AUTH_COOKIE_NAME)

    if not token:
        raise UnauthorizedError("Not authenticated")

    try:
        payload = decode_jwt_token(token)
    except jwt.PyJWTError as e:
        logger.info(f"Rejected auth token: {e}")
        raise UnauthorizedError("Invalid authentication token")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token")

    result = await db.execute(
        select(User).where(User.user_id == user_id)
    )
    user = result.scalar_one_or_none()

    if not user:
        raise UnauthorizedError("User not found")

    return user


def is_admin(user: User) -> bool:
    return user.role == UserRole.admin


def ensure_self_or_admin(current_user: User, user_id: str):
    """Users may act on their own resources; admins may act on anyone's."""
    if current_user.user_id != user_id and not is_admin(current_user):
        raise ForbiddenError("You can only access your own resources")
