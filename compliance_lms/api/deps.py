from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Iterable, Sequence

from compliance_lms.core.auth import Role, TokenError, create_access_token, decode_access_token
from compliance_lms.core.config import get_settings
from compliance_lms.domain import User
from compliance_lms.domain.services.assignment_email import AssignmentNotifier
from compliance_lms.infrastructure.db.session import get_session
from compliance_lms.infrastructure.repositories.learning_store import SqlAlchemyLearningStore
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),  # noqa: B008
) -> User:
    """Resolve the authenticated user from a bearer token."""
    if credentials is None:
        raise _unauthorized("Missing bearer token")

    try:
        payload = decode_access_token(credentials.credentials)
    except TokenError as exc:
        raise _unauthorized(str(exc)) from exc

    user_id = payload.get("sub")
    roles: Iterable[str] = payload.get("roles", [])

    if not user_id:
        raise _unauthorized("Token missing subject")

    if not roles:
        raise _forbidden("Token missing required roles")

    return User(user_id=user_id, email=payload.get("email", ""), roles=list(roles))


def require_roles(required_roles: Sequence[str]) -> Callable[[User], User]:
    """Dependency factory enforcing that the authenticated user has one of the required roles."""
    settings = get_settings()
    allowed = set(settings.allowed_roles)

    invalid_roles = [role for role in required_roles if role not in allowed]
    if invalid_roles:
        joined_roles = ", ".join(invalid_roles)
        raise ValueError(f"Unsupported role(s) requested: {joined_roles}")

    required = set(required_roles)

    def dependency(user: User = Depends(get_current_user)) -> User:  # noqa: B008
        if not user.has_any_role(*required):
            raise _forbidden("Insufficient role privileges")
        return user

    return dependency


async def authorize_assignment(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),  # noqa: B008
) -> User | None:
    """Admin gate for batch assignment, enforced only when ``ASSIGN_REQUIRE_ADMIN`` is set."""
    if not get_settings().assign_require_admin:
        return None

    user = await get_current_user(credentials)
    if not user.has_any_role(Role.ADMIN.value, Role.ORG_ADMIN.value):
        raise _forbidden("Insufficient role privileges")
    return user


def issue_smoke_token(user_id: str, *, role: Role, email: str | None = None) -> str:
    """Generate a signed token for manual smoke testing."""
    return create_access_token(user_id, roles=[role.value], email=email)


async def get_db_session() -> AsyncIterator[AsyncSession]:
    """Provide an async SQLAlchemy session for API handlers."""
    async for session in get_session():
        yield session


async def get_learning_store(
    session: AsyncSession = Depends(get_db_session),
) -> SqlAlchemyLearningStore:
    """Wrap the request-scoped session in the store used by the assignment workflow."""
    return SqlAlchemyLearningStore(session)


def get_assignment_notifier() -> AssignmentNotifier:
    return AssignmentNotifier()


def get_actor_id(x_user_id: str | None = Header(default=None)) -> str | None:
    """Audit actor from the ``x-user-id`` header; blank means no actor."""
    if x_user_id is None:
        return None
    return x_user_id.strip() or None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
