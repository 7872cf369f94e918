"""Persistence boundary for the course-assignment workflow.

Domain services talk to :class:`LearningStore` only. The SQLAlchemy implementation owns
no engine or session of its own: the caller hands it a session per request and the
process owns the engine lifecycle.
"""

from __future__ import annotations

from typing import Any, Protocol

import structlog
from compliance_lms.infrastructure.db.models import (
    AssignedCourseModel,
    AssignmentStatus,
    CourseModel,
    EmployeeModel,
    UserModel,
    UserRole,
    UserStatus,
)
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = structlog.get_logger()


class StoreError(Exception):
    """Raised when the underlying database rejects a read or a write.

    The message names the driver error only; statements and bound parameters (which can
    include credential hashes) stay on the chained ``__cause__``.
    """

    @classmethod
    def from_sqlalchemy(cls, exc: SQLAlchemyError) -> StoreError:
        orig = getattr(exc, "orig", None)
        if orig is None:
            return cls(type(exc).__name__)
        detail = str(orig).strip()
        name = type(orig).__name__
        return cls(f"{name}: {detail}" if detail else name)


class LearningStore(Protocol):
    """User, employee, course and assignment storage used by the assignment workflow."""

    async def get_course(self, course_id: str) -> CourseModel | None: ...

    async def get_user(self, user_id: str) -> UserModel | None: ...

    async def get_user_by_email(self, email: str) -> UserModel | None: ...

    async def get_employee(self, employee_id: str) -> EmployeeModel | None: ...

    async def add_user(
        self,
        *,
        email: str,
        hashed_password: str,
        full_name: str | None,
        role: UserRole,
        must_reset_password: bool,
    ) -> UserModel: ...

    async def set_user_credential(
        self, user: UserModel, *, hashed_password: str, must_reset_password: bool
    ) -> UserModel: ...

    async def find_assignment(self, user_id: str, course_id: str) -> AssignedCourseModel | None: ...

    async def add_assignment(
        self,
        *,
        user_id: str,
        course_id: str,
        org_id: str | None,
        assigned_by_id: str | None,
        details: dict[str, Any],
    ) -> AssignedCourseModel: ...

    async def list_assignments(
        self,
        *,
        user_id: str | None = None,
        course_id: str | None = None,
        org_id: str | None = None,
    ) -> list[AssignedCourseModel]: ...

    async def rollback(self) -> None: ...


class SqlAlchemyLearningStore:
    """:class:`LearningStore` backed by an ``AsyncSession``.

    Every write commits on its own so one failing reference never leaves pending state
    behind for the next one; a failed write rolls the session back before raising.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_course(self, course_id: str) -> CourseModel | None:
        return await self._scalar(select(CourseModel).where(CourseModel.id == course_id))

    async def get_user(self, user_id: str) -> UserModel | None:
        return await self._scalar(select(UserModel).where(UserModel.id == user_id))

    async def get_user_by_email(self, email: str) -> UserModel | None:
        return await self._scalar(select(UserModel).where(UserModel.email == email))

    async def get_employee(self, employee_id: str) -> EmployeeModel | None:
        return await self._scalar(select(EmployeeModel).where(EmployeeModel.id == employee_id))

    async def add_user(
        self,
        *,
        email: str,
        hashed_password: str,
        full_name: str | None,
        role: UserRole,
        must_reset_password: bool,
    ) -> UserModel:
        user = UserModel(
            email=email,
            hashed_password=hashed_password,
            full_name=full_name,
            role=role,
            status=UserStatus.ACTIVE,
            must_reset_password=must_reset_password,
        )
        self.session.add(user)
        await self._commit(user, operation="add_user")
        return user

    async def set_user_credential(
        self, user: UserModel, *, hashed_password: str, must_reset_password: bool
    ) -> UserModel:
        user.hashed_password = hashed_password
        user.must_reset_password = must_reset_password
        await self._commit(user, operation="set_user_credential")
        return user

    async def find_assignment(self, user_id: str, course_id: str) -> AssignedCourseModel | None:
        stmt = (
            select(AssignedCourseModel)
            .where(
                AssignedCourseModel.user_id == user_id,
                AssignedCourseModel.course_id == course_id,
            )
            .order_by(AssignedCourseModel.assigned_at)
            .limit(1)
        )
        return await self._scalar(stmt)

    async def add_assignment(
        self,
        *,
        user_id: str,
        course_id: str,
        org_id: str | None,
        assigned_by_id: str | None,
        details: dict[str, Any],
    ) -> AssignedCourseModel:
        assignment = AssignedCourseModel(
            user_id=user_id,
            course_id=course_id,
            org_id=org_id,
            assigned_by_id=assigned_by_id,
            progress=0.0,
            status=AssignmentStatus.ASSIGNED,
            details=details,
        )
        self.session.add(assignment)
        await self._commit(assignment, operation="add_assignment")
        return assignment

    async def list_assignments(
        self,
        *,
        user_id: str | None = None,
        course_id: str | None = None,
        org_id: str | None = None,
    ) -> list[AssignedCourseModel]:
        stmt = select(AssignedCourseModel).options(selectinload(AssignedCourseModel.course))
        if user_id is not None:
            stmt = stmt.where(AssignedCourseModel.user_id == user_id)
        if course_id is not None:
            stmt = stmt.where(AssignedCourseModel.course_id == course_id)
        if org_id is not None:
            stmt = stmt.where(AssignedCourseModel.org_id == org_id)
        stmt = stmt.order_by(AssignedCourseModel.assigned_at.desc())

        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError.from_sqlalchemy(exc) from exc
        return list(result.scalars().all())

    async def rollback(self) -> None:
        await self.session.rollback()
        logger.debug("store_rollback")

    async def _scalar(self, stmt: Any) -> Any:
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError.from_sqlalchemy(exc) from exc
        return result.scalar_one_or_none()

    async def _commit(self, instance: Any, *, operation: str) -> None:
        try:
            await self.session.commit()
            await self.session.refresh(instance)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            error = StoreError.from_sqlalchemy(exc)
            await logger.awarning("store_write_failed", operation=operation, error=str(error))
            raise error from exc
        logger.debug("store_commit", operation=operation)
