"""Integration tests for course assignment endpoints."""

from __future__ import annotations

import pytest
from compliance_lms.core.auth import Role
from compliance_lms.core.config import get_settings
from compliance_lms.domain.services.assignment_batch import AssignmentBatchService
from fastapi import status
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tests.utils import (
    RecordingEmailClient,
    add_course,
    add_user,
    auth_headers,
    count_assignments,
)

COURSE_ID = "course-ethics"


@pytest.fixture
async def seeded(session_factory: async_sessionmaker[AsyncSession]) -> dict[str, str]:
    """Seed the course, an admin and two learners; return their ids."""
    async with session_factory() as session:
        await add_course(session, COURSE_ID, "Business Ethics 101")
        admin = await add_user(session, "admin@acme-corp.com", user_id="admin-1")
        alice = await add_user(session, "alice@acme-corp.com")
        bob = await add_user(session, "bob@acme-corp.com")
        return {"admin": admin.id, "alice": alice.id, "bob": bob.id}


class TestAssignValidation:
    """Tests for POST /admin/assign request validation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"courseId": COURSE_ID},
            {"employeeIds": ["a"]},
            {"courseId": "", "employeeIds": ["a"]},
            {"courseId": COURSE_ID, "employeeIds": "a"},
        ],
    )
    async def test_missing_fields_return_400(self, async_client: AsyncClient, body) -> None:
        response = await async_client.post("/admin/assign", json=body)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "Missing required fields: courseId and employeeIds"}

    @pytest.mark.asyncio
    async def test_malformed_json_returns_400(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/admin/assign",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "error" in response.json()

    @pytest.mark.asyncio
    async def test_unknown_course_returns_400(
        self, async_client: AsyncClient, email_client: RecordingEmailClient
    ) -> None:
        response = await async_client.post(
            "/admin/assign", json={"courseId": "course-missing", "employeeIds": ["x"]}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "Course not found: course-missing"}
        assert email_client.sent == []

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_500(
        self, async_client: AsyncClient, seeded: dict[str, str], monkeypatch
    ) -> None:
        async def explode(self, batch):
            raise RuntimeError("database went away")

        monkeypatch.setattr(AssignmentBatchService, "run", explode)

        response = await async_client.post(
            "/admin/assign", json={"courseId": COURSE_ID, "employeeIds": [seeded["alice"]]}
        )

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {"error": "Internal Server Error"}


class TestAssignEndpoint:
    """Tests for POST /admin/assign outcomes."""

    @pytest.mark.asyncio
    async def test_empty_employee_list(
        self, async_client: AsyncClient, seeded: dict[str, str]
    ) -> None:
        response = await async_client.post(
            "/admin/assign", json={"courseId": COURSE_ID, "employeeIds": []}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"success": True, "assignedCount": 0, "results": []}

    @pytest.mark.asyncio
    async def test_mixed_batch_keeps_input_order(
        self,
        async_client: AsyncClient,
        seeded: dict[str, str],
        email_client: RecordingEmailClient,
    ) -> None:
        response = await async_client.post(
            "/admin/assign",
            json={
                "courseId": COURSE_ID,
                "orgId": "org-acme",
                "employeeIds": ["row-new", seeded["alice"], "row-ghost"],
                "employeeEmailMap": {"row-new": "New.Hire@Acme-Corp.com"},
                "createMissingUsers": True,
            },
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["assignedCount"] == 2
        created, existing, ghost = data["results"]

        assert created["employeeId"] == "row-new"
        assert created["assignedCreated"] is True
        assert created["userCreated"] is True
        assert created["createdUserId"] == created["userId"]
        assert created["tempPassword"]
        assert created["emailSent"] is True

        assert existing["employeeId"] == seeded["alice"]
        assert existing["userId"] == seeded["alice"]
        assert existing["userCreated"] is False
        assert "tempPassword" not in existing

        assert ghost == {
            "employeeId": "row-ghost",
            "assignedCreated": False,
            "userCreated": False,
            "emailSent": False,
            "error": "User not found and no email available to create user",
        }

        assert len(email_client.sent_to("new.hire@acme-corp.com")) == 1
        assert len(email_client.sent_to("alice@acme-corp.com")) == 1

    @pytest.mark.asyncio
    async def test_repeat_request_is_idempotent(
        self,
        async_client: AsyncClient,
        seeded: dict[str, str],
        session_factory: async_sessionmaker[AsyncSession],
        email_client: RecordingEmailClient,
    ) -> None:
        body = {"courseId": COURSE_ID, "employeeIds": [seeded["bob"]]}

        first = await async_client.post("/admin/assign", json=body)
        second = await async_client.post("/admin/assign", json=body)

        assert first.json()["assignedCount"] == 1
        data = second.json()
        assert data["assignedCount"] == 0
        [item] = data["results"]
        assert item["reason"] == "already_assigned"
        assert item["assignedId"] == first.json()["results"][0]["assignedId"]
        assert await count_assignments(session_factory, user_id=seeded["bob"]) == 1
        assert len(email_client.sent_to("bob@acme-corp.com")) == 1

    @pytest.mark.asyncio
    async def test_missing_user_without_creation(
        self, async_client: AsyncClient, seeded: dict[str, str]
    ) -> None:
        response = await async_client.post(
            "/admin/assign",
            json={
                "courseId": COURSE_ID,
                "employeeIds": ["row-1"],
                "employeeEmailMap": {"row-1": "someone@acme-corp.com"},
            },
        )

        [item] = response.json()["results"]
        assert item["error"] == "User not found and createMissingUsers is false"

    @pytest.mark.asyncio
    async def test_actor_header_recorded_on_assignment(
        self, async_client: AsyncClient, seeded: dict[str, str], admin_token: str
    ) -> None:
        await async_client.post(
            "/admin/assign",
            json={"courseId": COURSE_ID, "employeeIds": [seeded["alice"]]},
            headers={"x-user-id": seeded["admin"]},
        )

        response = await async_client.get(
            "/admin/assignments",
            params={"courseId": COURSE_ID},
            headers={"Authorization": f"Bearer {admin_token}"},
        )

        [item] = response.json()
        assert item["assignedById"] == seeded["admin"]

    @pytest.mark.asyncio
    async def test_unknown_actor_header_is_ignored(
        self, async_client: AsyncClient, seeded: dict[str, str], admin_token: str
    ) -> None:
        response = await async_client.post(
            "/admin/assign",
            json={"courseId": COURSE_ID, "employeeIds": [seeded["alice"]]},
            headers={"x-user-id": "not-a-user"},
        )
        assert response.json()["assignedCount"] == 1

        listing = await async_client.get(
            "/admin/assignments",
            params={"userId": seeded["alice"]},
            headers={"Authorization": f"Bearer {admin_token}"},
        )

        [item] = listing.json()
        assert item.get("assignedById") is None


class TestAssignmentListings:
    """Tests for GET /employee/assigned and GET /admin/assignments."""

    @pytest.mark.asyncio
    async def test_learner_sees_own_assignments(
        self, async_client: AsyncClient, seeded: dict[str, str]
    ) -> None:
        await async_client.post(
            "/admin/assign",
            json={
                "courseId": COURSE_ID,
                "employeeIds": [seeded["alice"]],
                "meta": {"dueDate": "2026-12-31"},
            },
        )

        response = await async_client.get(
            "/employee/assigned", headers=auth_headers(seeded["alice"])
        )

        assert response.status_code == status.HTTP_200_OK
        [item] = response.json()
        assert item["userId"] == seeded["alice"]
        assert item["status"] == "ASSIGNED"
        assert item["progress"] == 0.0
        assert item["details"] == {"dueDate": "2026-12-31"}
        assert item["course"]["title"] == "Business Ethics 101"

        other = await async_client.get("/employee/assigned", headers=auth_headers(seeded["bob"]))
        assert other.json() == []

    @pytest.mark.asyncio
    async def test_listing_requires_token(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/employee/assigned")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_admin_listing_rejects_learners(
        self, async_client: AsyncClient, learner_token: str
    ) -> None:
        response = await async_client.get(
            "/admin/assignments", headers={"Authorization": f"Bearer {learner_token}"}
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_org_admin_filters_by_org(
        self, async_client: AsyncClient, seeded: dict[str, str]
    ) -> None:
        await async_client.post(
            "/admin/assign",
            json={"courseId": COURSE_ID, "employeeIds": [seeded["alice"]], "orgId": "org-a"},
        )
        await async_client.post(
            "/admin/assign",
            json={"courseId": COURSE_ID, "employeeIds": [seeded["bob"]], "orgId": "org-b"},
        )

        response = await async_client.get(
            "/admin/assignments",
            params={"orgId": "org-b"},
            headers=auth_headers("org-admin-1", role=Role.ORG_ADMIN),
        )

        assert response.status_code == status.HTTP_200_OK
        [item] = response.json()
        assert item["userId"] == seeded["bob"]
        assert item["orgId"] == "org-b"


class TestAssignAdminGate:
    """Tests for POST /admin/assign with ASSIGN_REQUIRE_ADMIN enabled."""

    @pytest.fixture(autouse=True)
    def require_admin(self, monkeypatch) -> None:
        monkeypatch.setattr(get_settings(), "assign_require_admin", True)

    @pytest.mark.asyncio
    async def test_missing_token_is_rejected(
        self,
        async_client: AsyncClient,
        session_factory: async_sessionmaker[AsyncSession],
        seeded: dict[str, str],
    ) -> None:
        response = await async_client.post(
            "/admin/assign", json={"courseId": COURSE_ID, "employeeIds": [seeded["alice"]]}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert await count_assignments(session_factory, user_id=seeded["alice"]) == 0

    @pytest.mark.asyncio
    async def test_learner_token_is_forbidden(
        self, async_client: AsyncClient, seeded: dict[str, str]
    ) -> None:
        response = await async_client.post(
            "/admin/assign",
            json={"courseId": COURSE_ID, "employeeIds": [seeded["alice"]]},
            headers=auth_headers(seeded["bob"], role=Role.LEARNER),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_admin_token_assigns_and_becomes_actor(
        self, async_client: AsyncClient, seeded: dict[str, str]
    ) -> None:
        headers = auth_headers(seeded["admin"], role=Role.ADMIN)

        response = await async_client.post(
            "/admin/assign",
            json={"courseId": COURSE_ID, "employeeIds": [seeded["alice"]]},
            headers=headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["assignedCount"] == 1

        listing = await async_client.get(
            "/admin/assignments", params={"userId": seeded["alice"]}, headers=headers
        )
        [item] = listing.json()
        assert item["assignedById"] == seeded["admin"]
