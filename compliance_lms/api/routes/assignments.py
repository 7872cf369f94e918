"""Course assignment routes - batch assign, learner and admin listings."""

from __future__ import annotations

from typing import Any

import structlog
from compliance_lms.api.deps import (
    authorize_assignment,
    get_actor_id,
    get_assignment_notifier,
    get_current_user,
    get_learning_store,
    require_roles,
)
from compliance_lms.api.schemas.assignments import (
    AssignmentItem,
    AssignRequest,
    AssignResponse,
    CourseSummary,
    ErrorResponse,
)
from compliance_lms.domain import User
from compliance_lms.domain.services.assignment_batch import (
    AssignmentBatchService,
    CourseNotFoundError,
)
from compliance_lms.domain.services.assignment_email import AssignmentNotifier
from compliance_lms.infrastructure.db.models import AssignedCourseModel
from compliance_lms.infrastructure.repositories.learning_store import SqlAlchemyLearningStore
from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

logger = structlog.get_logger()
router = APIRouter(tags=["Assignments"])

MISSING_FIELDS_ERROR = "Missing required fields: courseId and employeeIds"
REQUIRED_FIELDS = frozenset({"courseId", "employeeIds", "course_id", "employee_ids"})


class AssignRequestError(Exception):
    """Raised when the assign request body is malformed."""


def parse_assign_request(body: Any) -> AssignRequest:
    """Validate a raw JSON body, collapsing errors into one readable message."""
    if not isinstance(body, dict):
        raise AssignRequestError(MISSING_FIELDS_ERROR)

    try:
        return AssignRequest.model_validate(body)
    except ValidationError as exc:
        errors = exc.errors()
        if any(err["loc"] and err["loc"][0] in REQUIRED_FIELDS for err in errors):
            raise AssignRequestError(MISSING_FIELDS_ERROR) from exc
        first = errors[0]
        location = ".".join(str(part) for part in first["loc"])
        raise AssignRequestError(f"Invalid request: {location}: {first['msg']}") from exc


@router.post(
    "/admin/assign",
    response_model=AssignResponse,
    response_model_exclude_none=True,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
    summary="Assign a course to employees",
    description=(
        "Resolve each employee reference to a user (optionally provisioning an account), "
        "skip existing assignments, create the rest and email each user once."
    ),
)
async def assign_course(
    request: Request,
    store: SqlAlchemyLearningStore = Depends(get_learning_store),
    notifier: AssignmentNotifier = Depends(get_assignment_notifier),
    actor_id: str | None = Depends(get_actor_id),
    caller: User | None = Depends(authorize_assignment),
) -> AssignResponse | JSONResponse:
    """Run one assignment batch and report a result per submitted reference.

    Unauthenticated unless ``ASSIGN_REQUIRE_ADMIN`` is set, yet it can create accounts and
    echoes their temporary passwords; deploy it behind the admin UI only. With the gate on,
    the token subject is the actor when no ``x-user-id`` header is sent.
    """
    if actor_id is None and caller is not None:
        actor_id = caller.user_id
    try:
        body = await request.json()
    except ValueError:
        body = None

    try:
        payload = parse_assign_request(body)
    except AssignRequestError as exc:
        await logger.awarning("assign_request_invalid", error=str(exc))
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    service = AssignmentBatchService(store, notifier)
    try:
        report = await service.run(payload.to_batch(assigned_by_id=actor_id))
    except CourseNotFoundError as exc:
        await logger.awarning("assign_course_missing", course_id=payload.course_id)
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except Exception:
        await logger.aexception("assign_route_failed", course_id=payload.course_id)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")

    return AssignResponse.from_report(report)


@router.get(
    "/employee/assigned",
    response_model=list[AssignmentItem],
    summary="List my assigned courses",
)
async def list_my_assignments(
    user: User = Depends(get_current_user),
    store: SqlAlchemyLearningStore = Depends(get_learning_store),
) -> list[AssignmentItem]:
    """Return the current user's assignments, newest first."""
    assignments = await store.list_assignments(user_id=user.user_id)
    return [_to_item(assignment) for assignment in assignments]


@router.get(
    "/admin/assignments",
    response_model=list[AssignmentItem],
    summary="List assignments",
)
async def list_assignments(
    course_id: str | None = Query(None, alias="courseId"),
    org_id: str | None = Query(None, alias="orgId"),
    user_id: str | None = Query(None, alias="userId"),
    store: SqlAlchemyLearningStore = Depends(get_learning_store),
    _: User = Depends(require_roles(["admin", "org_admin"])),
) -> list[AssignmentItem]:
    """Return assignments filtered by course, organization or user (admin-only)."""
    assignments = await store.list_assignments(
        user_id=user_id,
        course_id=course_id,
        org_id=org_id,
    )
    return [_to_item(assignment) for assignment in assignments]


def _to_item(assignment: AssignedCourseModel) -> AssignmentItem:
    course = assignment.course
    return AssignmentItem(
        id=assignment.id,
        user_id=assignment.user_id,
        course_id=assignment.course_id,
        org_id=assignment.org_id,
        assigned_by_id=assignment.assigned_by_id,
        progress=assignment.progress,
        status=assignment.status.value,
        details=assignment.details,
        assigned_at=assignment.assigned_at,
        course=(
            CourseSummary(id=course.id, title=course.title, description=course.description)
            if course is not None
            else None
        ),
    )


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})
