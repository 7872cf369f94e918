"""Authentication routes - login, token refresh, profile, password change."""

from __future__ import annotations

import structlog
from compliance_lms.api.deps import get_current_user, get_db_session
from compliance_lms.api.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RefreshTokenRequest,
    TokenResponse,
    UserResponse,
)
from compliance_lms.domain import User
from compliance_lms.domain.services.auth_service import (
    AuthService,
    InvalidCredentialsError,
    UserInactiveError,
    UserNotFoundError,
)
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()
router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="User login",
    description=(
        "Authenticate with email and password. `user.must_reset_password` is true while "
        "the account still uses a temporary credential."
    ),
)
async def login(
    payload: LoginRequest,
    session: AsyncSession = Depends(get_db_session),
) -> LoginResponse:
    """Authenticate user and return tokens."""
    service = AuthService(session)

    try:
        result = await service.login(
            email=payload.email,
            password=payload.password,
        )
    except InvalidCredentialsError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    except UserInactiveError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(exc),
        ) from exc

    return LoginResponse(
        message="Login successful",
        user=UserResponse(**result["user"]),
        tokens=TokenResponse(**result["tokens"]),
    )


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh tokens",
    description="Exchange a refresh token from login for a new access/refresh pair.",
)
async def refresh_tokens(
    payload: RefreshTokenRequest,
    session: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    service = AuthService(session)

    try:
        tokens = await service.refresh(payload.refresh_token)
    except InvalidCredentialsError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    except UserInactiveError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(exc),
        ) from exc

    return TokenResponse(**tokens)


@router.get(
    "/me",
    response_model=MeResponse,
    summary="Get current user",
)
async def get_me(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> MeResponse:
    """Get current authenticated user's profile."""
    service = AuthService(session)

    try:
        user_data = await service.get_user_by_id(user.user_id)
    except UserNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc

    return MeResponse(user=UserResponse(**user_data))


@router.post(
    "/change-password",
    response_model=dict,
    summary="Change password",
    description="Replace the current (or temporary) password and clear the forced reset.",
)
async def change_password(
    payload: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    """Change current user's password."""
    service = AuthService(session)

    try:
        result = await service.change_password(
            user_id=user.user_id,
            current_password=payload.current_password,
            new_password=payload.new_password,
        )
    except UserNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except InvalidCredentialsError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return result
