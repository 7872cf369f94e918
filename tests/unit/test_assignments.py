"""Unit tests for the duplicate guard and assignment writer."""

from __future__ import annotations

from compliance_lms.domain.services.assignments import AssignmentWriter, DuplicateGuard
from compliance_lms.infrastructure.db.models import AssignmentStatus
from compliance_lms.infrastructure.repositories.learning_store import SqlAlchemyLearningStore
from sqlalchemy.ext.asyncio import AsyncSession

from tests.utils import add_course, add_user


class TestDuplicateGuard:
    async def test_reports_assignment_only_after_write(
        self, db: AsyncSession, store: SqlAlchemyLearningStore
    ) -> None:
        course = await add_course(db, "course-privacy", "Data Privacy")
        user = await add_user(db, "erin@acme-corp.com")
        guard = DuplicateGuard(store)

        assert await guard.already_assigned(user.id, course.id) is False
        assert await guard.existing_assignment(user.id, course.id) is None

        written = await AssignmentWriter(store).create(user_id=user.id, course_id=course.id)

        assert await guard.already_assigned(user.id, course.id) is True
        existing = await guard.existing_assignment(user.id, course.id)
        assert existing is not None
        assert existing.id == written.id

    async def test_other_course_is_not_a_duplicate(
        self, db: AsyncSession, store: SqlAlchemyLearningStore
    ) -> None:
        first = await add_course(db, "course-privacy", "Data Privacy")
        second = await add_course(db, "course-security", "Security Basics")
        user = await add_user(db, "frank@acme-corp.com")
        await AssignmentWriter(store).create(user_id=user.id, course_id=first.id)

        assert await DuplicateGuard(store).already_assigned(user.id, second.id) is False


class TestAssignmentWriter:
    async def test_new_row_starts_assigned_with_zero_progress(
        self, db: AsyncSession, store: SqlAlchemyLearningStore
    ) -> None:
        course = await add_course(db, "course-privacy", "Data Privacy")
        user = await add_user(db, "grace@acme-corp.com")

        assignment = await AssignmentWriter(store).create(user_id=user.id, course_id=course.id)

        assert assignment.status == AssignmentStatus.ASSIGNED
        assert assignment.progress == 0.0
        assert assignment.org_id is None
        assert assignment.assigned_by_id is None
        assert assignment.details == {}

    async def test_details_are_copied(
        self, db: AsyncSession, store: SqlAlchemyLearningStore
    ) -> None:
        course = await add_course(db, "course-privacy", "Data Privacy")
        user = await add_user(db, "heidi@acme-corp.com")
        meta = {"source": "csv"}

        assignment = await AssignmentWriter(store).create(
            user_id=user.id, course_id=course.id, org_id="org-acme", details=meta
        )
        meta["source"] = "changed"

        assert assignment.details == {"source": "csv"}
        assert assignment.org_id == "org-acme"
