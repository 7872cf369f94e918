"""Pydantic schemas for course assignment endpoints.

The admin UI speaks camelCase, so every model here serializes by alias.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, assert_never

from compliance_lms.domain.services.assignment_batch import (
    Assigned,
    AssignmentBatch,
    BatchReport,
    Failed,
    ReferenceOutcome,
    Skipped,
)
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Request Schemas ---


class AssignRequest(CamelModel):
    """Request body for POST /admin/assign."""

    course_id: str = Field(..., min_length=1, description="Course to assign")
    employee_ids: list[str] = Field(..., description="Employee references (user or roster ids)")
    org_id: str | None = Field(None, description="Organization scope for the assignments")
    employee_email_map: dict[str, str | None] = Field(
        default_factory=dict,
        description="Reference -> email, used for lookup and account creation",
    )
    create_missing_users: bool = Field(
        default=False,
        description="Provision accounts for references that resolve to no user",
    )
    skip_if_already_assigned: bool = Field(
        default=True,
        description="Skip users who already hold this course",
    )
    meta: dict[str, Any] | None = Field(None, description="Stored on each created assignment")

    @field_validator("employee_email_map", mode="before")
    @classmethod
    def _null_map_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    def to_batch(self, assigned_by_id: str | None = None) -> AssignmentBatch:
        return AssignmentBatch(
            course_id=self.course_id,
            employee_ids=list(self.employee_ids),
            org_id=self.org_id,
            employee_email_map=dict(self.employee_email_map),
            create_missing_users=self.create_missing_users,
            skip_if_already_assigned=self.skip_if_already_assigned,
            meta=self.meta,
            assigned_by_id=assigned_by_id,
        )


# --- Response Schemas ---


class AssignResultItem(CamelModel):
    """Outcome for a single submitted reference."""

    employee_id: str
    user_id: str | None = None
    assigned_created: bool = False
    user_created: bool = False
    created_user_id: str | None = None
    assigned_id: str | None = None
    reason: str | None = None
    temp_password: str | None = Field(
        None, description="Only present when a credential was generated in this call"
    )
    email_sent: bool = False
    error: str | None = None

    @classmethod
    def from_outcome(cls, outcome: ReferenceOutcome) -> AssignResultItem:
        if isinstance(outcome, Assigned):
            return cls(
                employee_id=outcome.employee_id,
                user_id=outcome.user_id,
                assigned_created=True,
                user_created=outcome.user_created,
                created_user_id=outcome.created_user_id,
                assigned_id=outcome.assignment_id,
                temp_password=outcome.temp_password,
                email_sent=outcome.email_sent,
            )
        if isinstance(outcome, Skipped):
            return cls(
                employee_id=outcome.employee_id,
                user_id=outcome.user_id,
                user_created=outcome.user_created,
                created_user_id=outcome.created_user_id,
                assigned_id=outcome.assignment_id,
                reason=outcome.reason,
                temp_password=outcome.temp_password,
                email_sent=outcome.email_sent,
            )
        if isinstance(outcome, Failed):
            return cls(
                employee_id=outcome.employee_id,
                user_id=outcome.user_id,
                user_created=outcome.user_created,
                created_user_id=outcome.created_user_id,
                temp_password=outcome.temp_password,
                email_sent=outcome.email_sent,
                error=outcome.error,
            )
        assert_never(outcome)


class AssignResponse(CamelModel):
    success: bool = True
    assigned_count: int
    results: list[AssignResultItem]

    @classmethod
    def from_report(cls, report: BatchReport) -> AssignResponse:
        return cls(
            assigned_count=report.assigned_count,
            results=[AssignResultItem.from_outcome(outcome) for outcome in report.outcomes],
        )


class ErrorResponse(BaseModel):
    error: str


class CourseSummary(CamelModel):
    id: str
    title: str
    description: str | None = None


class AssignmentItem(CamelModel):
    """An assigned course as listed to learners and admins."""

    id: str
    user_id: str
    course_id: str
    org_id: str | None = None
    assigned_by_id: str | None = None
    progress: float
    status: str
    details: dict[str, Any] | None = None
    assigned_at: datetime
    course: CourseSummary | None = None
