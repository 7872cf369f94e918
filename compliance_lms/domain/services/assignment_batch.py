"""
Batch course assignment.

Drives every submitted employee reference through resolve -> provision/backfill ->
duplicate guard -> write -> notify. Each reference ends in exactly one tagged outcome
(:class:`Assigned`, :class:`Skipped` or :class:`Failed`); a failure in one reference
never stops the others. Outcomes keep the input order.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog
from compliance_lms.domain.services.assignment_email import AssignmentNotifier
from compliance_lms.domain.services.assignments import AssignmentWriter, DuplicateGuard
from compliance_lms.domain.services.identity import IdentityResolver, normalize_email
from compliance_lms.domain.services.provisioning import (
    CredentialProvisioner,
    ProvisionedCredential,
    ProvisioningError,
)
from compliance_lms.infrastructure.db.models import UserModel
from compliance_lms.infrastructure.repositories.learning_store import (
    LearningStore,
    StoreError,
)

logger = structlog.get_logger()

REASON_ALREADY_ASSIGNED = "already_assigned"
ERROR_USER_NOT_FOUND = "User not found and createMissingUsers is false"
ERROR_NO_EMAIL = "User not found and no email available to create user"
DEFAULT_COURSE_TITLE = "Assigned Course"
MAX_ACTOR_ID_LENGTH = 36


class CourseNotFoundError(Exception):
    """Raised before any reference is processed when the target course is missing."""


@dataclass(slots=True)
class AssignmentBatch:
    """One request to assign a course to a list of employee references."""

    course_id: str
    employee_ids: Sequence[str]
    org_id: str | None = None
    employee_email_map: dict[str, str | None] = field(default_factory=dict)
    create_missing_users: bool = False
    skip_if_already_assigned: bool = True
    meta: dict[str, Any] | None = None
    # Raw actor id as received; validated against the user store before use
    assigned_by_id: str | None = None


@dataclass(slots=True)
class Assigned:
    employee_id: str
    user_id: str
    assignment_id: str
    user_created: bool = False
    created_user_id: str | None = None
    temp_password: str | None = None
    email_sent: bool = False


@dataclass(slots=True)
class Skipped:
    employee_id: str
    user_id: str
    assignment_id: str
    reason: str = REASON_ALREADY_ASSIGNED
    user_created: bool = False
    created_user_id: str | None = None
    temp_password: str | None = None
    email_sent: bool = False


@dataclass(slots=True)
class Failed:
    employee_id: str
    error: str
    user_id: str | None = None
    user_created: bool = False
    created_user_id: str | None = None
    temp_password: str | None = None
    email_sent: bool = False


ReferenceOutcome = Assigned | Skipped | Failed


@dataclass(slots=True)
class BatchReport:
    course_id: str
    course_title: str
    outcomes: list[ReferenceOutcome]

    @property
    def assigned_count(self) -> int:
        return sum(1 for outcome in self.outcomes if isinstance(outcome, Assigned))


@dataclass(slots=True)
class _ReferenceProgress:
    """What has already happened for a reference, carried into whichever outcome ends it."""

    employee_id: str
    user_id: str | None = None
    user_created: bool = False
    created_user_id: str | None = None
    temp_password: str | None = None
    email_sent: bool = False

    def record_credential(self, issued: ProvisionedCredential, *, created: bool) -> None:
        self.user_id = issued.user.id
        self.temp_password = issued.temporary_password
        if created:
            self.user_created = True
            self.created_user_id = issued.user.id

    def assigned(self, assignment_id: str) -> Assigned:
        return Assigned(
            employee_id=self.employee_id,
            user_id=self.user_id or "",
            assignment_id=assignment_id,
            user_created=self.user_created,
            created_user_id=self.created_user_id,
            temp_password=self.temp_password,
            email_sent=self.email_sent,
        )

    def skipped(self, assignment_id: str) -> Skipped:
        return Skipped(
            employee_id=self.employee_id,
            user_id=self.user_id or "",
            assignment_id=assignment_id,
            user_created=self.user_created,
            created_user_id=self.created_user_id,
            temp_password=self.temp_password,
            email_sent=self.email_sent,
        )

    def failed(self, error: str) -> Failed:
        return Failed(
            employee_id=self.employee_id,
            error=error,
            user_id=self.user_id,
            user_created=self.user_created,
            created_user_id=self.created_user_id,
            temp_password=self.temp_password,
            email_sent=self.email_sent,
        )


class AssignmentBatchService:
    """Assign one course to many employee references."""

    def __init__(
        self,
        store: LearningStore,
        notifier: AssignmentNotifier,
        *,
        resolver: IdentityResolver | None = None,
        provisioner: CredentialProvisioner | None = None,
        guard: DuplicateGuard | None = None,
        writer: AssignmentWriter | None = None,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.resolver = resolver or IdentityResolver(store)
        self.provisioner = provisioner or CredentialProvisioner(store)
        self.guard = guard or DuplicateGuard(store)
        self.writer = writer or AssignmentWriter(store)

    async def run(self, batch: AssignmentBatch) -> BatchReport:
        course = await self.store.get_course(batch.course_id)
        if course is None:
            raise CourseNotFoundError(f"Course not found: {batch.course_id}")

        course_id = course.id
        course_title = course.title or DEFAULT_COURSE_TITLE
        actor_id = await self.resolve_actor(batch.assigned_by_id)

        await logger.ainfo(
            "assign_batch_started",
            course_id=course_id,
            org_id=batch.org_id,
            assigned_by_id=actor_id,
            references=len(batch.employee_ids),
            create_missing_users=batch.create_missing_users,
            skip_if_already_assigned=batch.skip_if_already_assigned,
        )

        outcomes: list[ReferenceOutcome] = []
        for reference in batch.employee_ids:
            outcome = await self._process_isolated(
                reference,
                batch=batch,
                course_id=course_id,
                course_title=course_title,
                actor_id=actor_id,
            )
            outcomes.append(outcome)

        report = BatchReport(course_id=course_id, course_title=course_title, outcomes=outcomes)
        await logger.ainfo(
            "assign_batch_completed",
            course_id=course_id,
            assigned_count=report.assigned_count,
            skipped=sum(1 for o in outcomes if isinstance(o, Skipped)),
            failed=sum(1 for o in outcomes if isinstance(o, Failed)),
        )
        return report

    async def resolve_actor(self, actor_id: str | None) -> str | None:
        """Keep the actor only when it names an existing user."""
        candidate = (actor_id or "").strip()
        if not candidate or len(candidate) > MAX_ACTOR_ID_LENGTH:
            return None
        actor = await self.store.get_user(candidate)
        if actor is None:
            await logger.awarning("assign_actor_unknown", assigned_by_id=candidate)
            return None
        return actor.id

    async def _process_isolated(
        self,
        reference: str,
        *,
        batch: AssignmentBatch,
        course_id: str,
        course_title: str,
        actor_id: str | None,
    ) -> ReferenceOutcome:
        progress = _ReferenceProgress(employee_id=reference)
        try:
            return await self._process(
                progress,
                batch=batch,
                course_id=course_id,
                course_title=course_title,
                actor_id=actor_id,
            )
        except Exception as exc:
            await logger.aexception("assign_reference_crashed", reference=reference)
            await self.store.rollback()
            return progress.failed(str(exc) or exc.__class__.__name__)

    async def _process(
        self,
        progress: _ReferenceProgress,
        *,
        batch: AssignmentBatch,
        course_id: str,
        course_title: str,
        actor_id: str | None,
    ) -> ReferenceOutcome:
        reference = progress.employee_id

        try:
            resolution = await self.resolver.resolve(reference, batch.employee_email_map)
        except StoreError as exc:
            return progress.failed(f"User resolution failed: {exc}")

        user = resolution.user
        issued: ProvisionedCredential | None = None

        if user is None:
            if not batch.create_missing_users:
                return progress.failed(ERROR_USER_NOT_FOUND)
            if not resolution.email:
                return progress.failed(ERROR_NO_EMAIL)
            try:
                issued = await self.provisioner.provision(resolution.email)
            except ProvisioningError as exc:
                return progress.failed(f"User provisioning failed: {exc}")
            except StoreError as exc:
                # Usually a concurrent batch created the same address first
                user = await self._find_existing_user(reference, resolution.email)
                if user is None:
                    return progress.failed(f"User provisioning failed: {exc}")
            else:
                progress.record_credential(issued, created=True)
                user = issued.user

        if issued is None and not user.has_credential and batch.create_missing_users:
            progress.user_id = user.id
            try:
                issued = await self.provisioner.issue_credential(user)
            except (ProvisioningError, StoreError) as exc:
                return progress.failed(f"Credential setup failed: {exc}")
            progress.record_credential(issued, created=False)
            user = issued.user

        # Plain values from here on: a failed write expires ORM instances
        user_id = user.id
        user_email = user.email
        progress.user_id = user_id

        if issued is not None:
            progress.email_sent = await self._notify(
                reference, user_email, course_title, issued.temporary_password
            )

        if batch.skip_if_already_assigned:
            try:
                existing = await self.guard.existing_assignment(user_id, course_id)
            except StoreError as exc:
                return progress.failed(f"Duplicate check failed: {exc}")
            if existing is not None:
                await logger.ainfo(
                    "assign_reference_skipped",
                    reference=reference,
                    user_id=user_id,
                    assignment_id=existing.id,
                )
                return progress.skipped(existing.id)

        try:
            assignment = await self.writer.create(
                user_id=user_id,
                course_id=course_id,
                org_id=batch.org_id,
                assigned_by_id=actor_id,
                details=batch.meta,
            )
        except StoreError as exc:
            await logger.aerror(
                "assign_write_failed", reference=reference, user_id=user_id, error=str(exc)
            )
            return progress.failed(str(exc))
        assignment_id = assignment.id

        # Accounts that just received credentials were already notified above
        if issued is None:
            progress.email_sent = await self._notify(reference, user_email, course_title, None)

        return progress.assigned(assignment_id)

    async def _find_existing_user(self, reference: str, email: str) -> UserModel | None:
        try:
            user = await self.store.get_user_by_email(normalize_email(email) or email)
        except StoreError:
            return None
        if user is not None:
            await logger.ainfo(
                "assign_reference_resolved",
                reference=reference,
                strategy="provisioning_conflict",
                user_id=user.id,
            )
        return user

    async def _notify(
        self,
        reference: str,
        to_email: str | None,
        course_title: str,
        temporary_password: str | None,
    ) -> bool:
        try:
            return await self.notifier.notify(
                to_email=to_email,
                course_title=course_title,
                temporary_password=temporary_password,
            )
        except Exception:
            await logger.aexception("assign_email_crashed", reference=reference)
            return False
