from datetime import timedelta
from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.constants.constants import UserRole
from app.core.config import settings
from app.core.database import aget_db
from app.core.errors import BadRequestError, UnauthorizedError
from app.core.limiter import limiter
from app.core.security import (
    AUTH_COOKIE_NAME,
    create_jwt_token,
    get_current_user,
    hash_password,
    verify_password,
)
from app.models.user import User
from app.schemas.userSchema import LoginRequest, RegisterRequest
from app.services.EmailService import send_email_safely
from app.services.email_templates import welcome_email
from app.utils.dates import utcnow
from app.utils.response import success_response
from app.utils.serializers import serialize_user

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)

# -----------------------------
# Cookie Helpers
# -----------------------------
def set_auth_cookie(response: Response, token: str, expires: timedelta):
    """Set auth cookie."""
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="none" if settings.COOKIE_SECURE else "lax",
        path="/",
        max_age=int(expires.total_seconds())
    )


def clear_auth_cookie(response: Response):
    """Clear auth cookie."""
    response.delete_cookie(
        key=AUTH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="none" if settings.COOKIE_SECURE else "lax",
    )


def start_session(response: Response, user: User):
    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": str(user.user_id),
        "username": user.username,
        "role": user.role.value if hasattr(user.role, "value") else user.role,
    }
    set_auth_cookie(response, create_jwt_token(payload, expires_delta=expires), expires)


# -----------------------------
# Register
# -----------------------------
@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def register(
    request: Request,
    response: Response,
    body: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(aget_db)
):
    """Create an account and start a session. The welcome email is sent detached."""
    email = body.email.lower()
    result = await db.execute(
        select(User).where(or_(User.username == body.username, User.email == email))
    )
    for existing in result.scalars().all():
        if existing.username == body.username:
            raise BadRequestError("Username already exists", "USER_EXISTS")
        raise BadRequestError("Email already exists", "USER_EXISTS")

    user = User(
        fullname=body.fullname,
        username=body.username,
        email=email,
        hashed_password=hash_password(body.password),
        avatar=body.avatar or settings.DEFAULT_AVATAR_URL or None,
        role=UserRole.user,
        last_active=utcnow(),
    )
    db.add(user)
    await db.commit()
    logger.info(f"✅ Registered user {user.username}")

    start_session(response, user)
    background_tasks.add_task(send_email_safely, welcome_email(user.fullname, user.email))

    return success_response(serialize_user(user), "User registered successfully")


# -----------------------------
# Login
# -----------------------------
@router.post("/login")
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: AsyncSession = Depends(aget_db)
):
    """Log in with a username or an email address."""
    identifier = body.username.strip()
    result = await db.execute(
        select(User).where(or_(User.username == identifier, User.email == identifier.lower()))
    )
    user = result.scalars().first()

    if not user or not verify_password(body.password, user.hashed_password):
        raise UnauthorizedError("Invalid username or password", "INVALID_CREDENTIALS")

    user.last_active = utcnow()
    await db.commit()

    start_session(response, user)
    return success_response(serialize_user(user), "Login successful")


# -----------------------------
# Logout
# -----------------------------
@router.post("/logout")
async def logout(response: Response):
    clear_auth_cookie(response)
    return success_response(message="Logged out successfully")


# -----------------------------
# Get Current User
# -----------------------------
@router.get("/me")
async def me(current_user: User = Depends(get_current_user)):
    """Return current authenticated user info"""
    return success_response(serialize_user(current_user))
