"""Duplicate guard and writer for course assignments."""

from __future__ import annotations

from typing import Any

import structlog
from compliance_lms.infrastructure.db.models import AssignedCourseModel
from compliance_lms.infrastructure.repositories.learning_store import LearningStore

logger = structlog.get_logger()


class DuplicateGuard:
    """Advisory check for an existing (user, course) assignment.

    The check and the later write are separate statements, so two concurrent batches
    can both pass it.
    """

    def __init__(self, store: LearningStore) -> None:
        self.store = store

    async def existing_assignment(
        self, user_id: str, course_id: str
    ) -> AssignedCourseModel | None:
        return await self.store.find_assignment(user_id, course_id)

    async def already_assigned(self, user_id: str, course_id: str) -> bool:
        return await self.existing_assignment(user_id, course_id) is not None


class AssignmentWriter:
    def __init__(self, store: LearningStore) -> None:
        self.store = store

    async def create(
        self,
        *,
        user_id: str,
        course_id: str,
        org_id: str | None = None,
        assigned_by_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AssignedCourseModel:
        """Persist a fresh ``ASSIGNED`` row with zero progress."""
        assignment = await self.store.add_assignment(
            user_id=user_id,
            course_id=course_id,
            org_id=org_id,
            assigned_by_id=assigned_by_id,
            details=dict(details or {}),
        )
        await logger.ainfo(
            "assign_assignment_created",
            assignment_id=assignment.id,
            user_id=user_id,
            course_id=course_id,
            org_id=org_id,
        )
        return assignment
