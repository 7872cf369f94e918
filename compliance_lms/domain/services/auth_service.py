"""Authentication service: credential hashing, temporary credentials and sign-in."""

from __future__ import annotations

import secrets
import string
from datetime import UTC, datetime, timedelta

import structlog
from compliance_lms.core.auth import (
    REFRESH_TOKEN,
    TokenError,
    create_access_token,
    decode_access_token,
)
from compliance_lms.core.config import get_settings
from compliance_lms.domain.services.identity import normalize_email
from compliance_lms.infrastructure.db.models import UserModel, UserStatus
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

# Password hashing context with bcrypt (salted per hash)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

TEMP_PASSWORD_SYMBOLS = "!@#$%^&*-_=+?"
TEMP_PASSWORD_ALPHABET = string.ascii_letters + string.digits + TEMP_PASSWORD_SYMBOLS
MIN_TEMP_PASSWORD_LENGTH = 10


class AuthError(Exception):
    """Base exception for authentication errors."""


class InvalidCredentialsError(AuthError):
    """Raised when login credentials are invalid."""


class UserNotFoundError(AuthError):
    """Raised when user is not found."""


class UserInactiveError(AuthError):
    """Raised when user account is inactive or suspended."""


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Verify a password against its hash; accounts without a credential never match."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def generate_temporary_password(length: int | None = None) -> str:
    """Return a random one-time credential.

    The result always mixes lower case, upper case, digits and symbols.
    """
    if length is None:
        length = get_settings().temp_password_length
    if length < MIN_TEMP_PASSWORD_LENGTH:
        raise ValueError(f"Temporary passwords need at least {MIN_TEMP_PASSWORD_LENGTH} characters")

    required = [
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.digits),
        secrets.choice(TEMP_PASSWORD_SYMBOLS),
    ]
    rest = [secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(length - len(required))]
    chars = required + rest
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


class AuthService:
    """Service for authentication operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def login(self, *, email: str, password: str) -> dict:
        """
        Authenticate user with email and password.

        Returns:
            dict with user data and tokens
        """
        normalized = normalize_email(email) or ""
        await logger.ainfo("login_attempt", email=normalized)

        user = await self._get_user(UserModel.email == normalized)

        if user is None:
            await logger.awarning("login_user_not_found", email=normalized)
            raise InvalidCredentialsError("Invalid email or password")

        if not verify_password(password, user.hashed_password):
            await logger.awarning("login_invalid_password", email=normalized)
            raise InvalidCredentialsError("Invalid email or password")

        if user.status != UserStatus.ACTIVE:
            await logger.awarning("login_inactive_user", email=normalized, status=user.status.value)
            raise UserInactiveError(f"Account is {user.status.value}")

        user.last_login_at = datetime.now(UTC)
        await self.session.commit()
        await self.session.refresh(user)

        await logger.ainfo(
            "login_success",
            user_id=user.id,
            must_reset_password=user.must_reset_password,
        )

        return {
            "user": self._user_to_dict(user),
            "tokens": self._generate_tokens(user),
        }

    async def refresh(self, refresh_token: str) -> dict:
        """Exchange a refresh token for a new token pair.

        The account is re-read so suspended or deleted users cannot keep refreshing.
        """
        try:
            claims = decode_access_token(refresh_token, expected_type=REFRESH_TOKEN)
        except TokenError as exc:
            await logger.awarning("token_refresh_rejected", error=str(exc))
            raise InvalidCredentialsError("Invalid refresh token") from exc

        user = await self._get_user(UserModel.id == claims["sub"])
        if user is None:
            raise InvalidCredentialsError("Invalid refresh token")
        if user.status != UserStatus.ACTIVE:
            raise UserInactiveError(f"Account is {user.status.value}")

        await logger.ainfo("token_refreshed", user_id=user.id)
        return self._generate_tokens(user)

    async def get_user_by_id(self, user_id: str) -> dict:
        """Get user by ID."""
        user = await self._get_user(UserModel.id == user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return self._user_to_dict(user)

    async def change_password(
        self, *, user_id: str, current_password: str, new_password: str
    ) -> dict:
        """Replace the user's credential and clear any pending forced reset."""
        user = await self._get_user(UserModel.id == user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")

        if not verify_password(current_password, user.hashed_password):
            raise InvalidCredentialsError("Current password is incorrect")

        user.hashed_password = hash_password(new_password)
        user.must_reset_password = False
        await self.session.commit()

        await logger.ainfo("password_changed", user_id=user_id)

        return {"message": "Password changed successfully"}

    async def _get_user(self, criterion) -> UserModel | None:
        result = await self.session.execute(select(UserModel).where(criterion))
        return result.scalar_one_or_none()

    def _generate_tokens(self, user: UserModel) -> dict:
        """Generate access and refresh tokens for user."""
        settings = get_settings()

        access_token = create_access_token(
            subject=user.id,
            roles=[user.role.value],
            email=user.email,
            expires_delta=timedelta(seconds=settings.access_token_ttl_seconds),
        )
        refresh_token = create_access_token(
            subject=user.id,
            roles=[user.role.value],
            email=user.email,
            expires_delta=timedelta(days=7),
            token_type=REFRESH_TOKEN,
        )

        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "expires_in": settings.access_token_ttl_seconds,
        }

    def _user_to_dict(self, user: UserModel) -> dict:
        """Convert UserModel to dict for response."""
        return {
            "id": user.id,
            "email": user.email,
            "full_name": user.full_name,
            "role": user.role.value,
            "status": user.status.value,
            "must_reset_password": user.must_reset_password,
            "created_at": user.created_at,
            "last_login_at": user.last_login_at,
        }
