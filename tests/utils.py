from __future__ import annotations

import asyncio
from typing import Any

from compliance_lms.api.deps import issue_smoke_token
from compliance_lms.core.auth import Role
from compliance_lms.domain.services.auth_service import hash_password
from compliance_lms.infrastructure.db.models import (
    AssignedCourseModel,
    CourseModel,
    EmployeeModel,
    UserModel,
    UserRole,
)
from compliance_lms.libs.resend_client import ResendClientError, ResendEmailResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

EXISTING_PASSWORD = "Existing-pass-123"


class RecordingEmailClient:
    """Stands in for ResendClient; keeps every accepted message."""

    def __init__(self, fail_for: set[str] | None = None, delay: float = 0.0) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail_for = fail_for or set()
        self.delay = delay

    async def send_email(
        self,
        *,
        from_email: str,
        to_emails: list[str],
        subject: str,
        html: str,
        text: str,
        reply_to: str | None = None,
    ) -> ResendEmailResponse:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_for.intersection(to_emails):
            raise ResendClientError("Resend error 500: upstream unavailable")
        self.sent.append(
            {
                "from": from_email,
                "to": to_emails,
                "subject": subject,
                "html": html,
                "text": text,
                "reply_to": reply_to,
            }
        )
        return ResendEmailResponse(id=f"email-{len(self.sent)}")

    def sent_to(self, address: str) -> list[dict[str, Any]]:
        return [message for message in self.sent if address in message["to"]]


def auth_headers(user_id: str = "learner-1", role: Role = Role.LEARNER) -> dict[str, str]:
    token = issue_smoke_token(user_id, role=role, email="learner@acme-corp.com")
    return {"Authorization": f"Bearer {token}"}


async def add_course(
    session: AsyncSession, course_id: str = "course-ethics", title: str = "Business Ethics 101"
) -> CourseModel:
    course = CourseModel(id=course_id, title=title, description="Annual compliance training")
    session.add(course)
    await session.commit()
    return course


async def add_user(
    session: AsyncSession,
    email: str,
    *,
    user_id: str | None = None,
    password: str | None = EXISTING_PASSWORD,
    role: UserRole = UserRole.LEARNER,
) -> UserModel:
    user = UserModel(
        email=email,
        hashed_password=hash_password(password) if password else None,
        full_name=email.split("@")[0],
        role=role,
    )
    if user_id is not None:
        user.id = user_id
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def add_employee(
    session: AsyncSession,
    employee_id: str,
    *,
    user_id: str | None = None,
    email: str | None = None,
    org_id: str | None = "org-acme",
) -> EmployeeModel:
    employee = EmployeeModel(id=employee_id, user_id=user_id, email=email, org_id=org_id)
    session.add(employee)
    await session.commit()
    return employee


async def count_assignments(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    user_id: str | None = None,
    course_id: str | None = None,
) -> int:
    stmt = select(func.count(AssignedCourseModel.id))
    if user_id is not None:
        stmt = stmt.where(AssignedCourseModel.user_id == user_id)
    if course_id is not None:
        stmt = stmt.where(AssignedCourseModel.course_id == course_id)
    async with session_factory() as session:
        return int(await session.scalar(stmt) or 0)


async def fetch_user_by_email(
    session_factory: async_sessionmaker[AsyncSession], email: str
) -> UserModel | None:
    async with session_factory() as session:
        result = await session.execute(select(UserModel).where(UserModel.email == email))
        return result.scalar_one_or_none()
