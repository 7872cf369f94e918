"""
Resend API client for transactional emails.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog
from compliance_lms.core.config import get_settings

logger = structlog.get_logger(__name__)


class ResendClientError(Exception):
    """Base exception for Resend client errors."""


class ResendAPIError(ResendClientError):
    """Raised for non-success responses from Resend."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class ResendEmailResponse:
    id: str

    @classmethod
    def from_response(cls, response: httpx.Response) -> ResendEmailResponse:
        try:
            email_id = response.json().get("id")
        except ValueError as exc:
            raise ResendAPIError(
                "Resend response was not valid JSON", status_code=response.status_code
            ) from exc
        if not email_id:
            raise ResendAPIError(
                "Resend response missing email id", status_code=response.status_code
            )
        return cls(id=email_id)


class ResendClient:
    """Async Resend API client.

    A fresh ``httpx.AsyncClient`` is opened per send unless ``transport`` is given,
    which tests use to stub the API.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.api_key = api_key or settings.resend_api_key
        self.base_url = (base_url or settings.resend_base_url).rstrip("/")
        self.timeout = (
            timeout_seconds if timeout_seconds is not None else settings.resend_timeout_seconds
        )
        self.transport = transport

        if not self.api_key:
            logger.warning("resend_api_key_missing", msg="RESEND_API_KEY not configured")

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
        """Send one email; raises :class:`ResendClientError` on any delivery problem."""
        if not self.api_key:
            raise ResendClientError("RESEND_API_KEY not configured")

        payload: dict[str, Any] = {
            "from": from_email,
            "to": to_emails,
            "subject": subject,
            "html": html,
            "text": text,
        }
        if reply_to:
            payload["reply_to"] = reply_to

        response = await self._post("/emails", payload)
        if response.status_code not in (200, 201):
            raise ResendAPIError(
                f"Resend error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        return ResendEmailResponse.from_response(response)

    async def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
                headers={"Authorization": f"Bearer {self.api_key}"},
            ) as client:
                return await client.post(path, json=payload)
        except httpx.HTTPError as exc:
            raise ResendClientError(f"Resend request failed: {exc}") from exc
