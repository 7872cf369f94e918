"""
Course assignment emails.

Two variants: a welcome message carrying a temporary credential for accounts that were
provisioned (or given a credential) during the batch, and a plain announcement for
existing accounts. Delivery is best-effort: failures and timeouts are logged and
reported as ``False``, never raised.
"""

from __future__ import annotations

import asyncio
from html import escape
from typing import Protocol

import structlog
from compliance_lms.core.config import Settings, get_settings
from compliance_lms.libs.resend_client import (
    ResendClient,
    ResendClientError,
    ResendEmailResponse,
)

logger = structlog.get_logger(__name__)


class EmailClient(Protocol):
    async def send_email(
        self,
        *,
        from_email: str,
        to_emails: list[str],
        subject: str,
        html: str,
        text: str,
        reply_to: str | None = None,
    ) -> ResendEmailResponse: ...


class AssignmentNotifier:
    """Send assignment emails within a bounded deadline."""

    def __init__(
        self,
        client: EmailClient | None = None,
        settings: Settings | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client or ResendClient()
        self.timeout_seconds = (
            timeout_seconds
            if timeout_seconds is not None
            else self.settings.notifier_timeout_seconds
        )

    async def notify(
        self,
        *,
        to_email: str | None,
        course_title: str,
        temporary_password: str | None = None,
    ) -> bool:
        """Send one assignment email. Returns whether the provider accepted it."""
        if not to_email:
            await logger.awarning("assign_email_skipped", reason="missing_recipient")
            return False

        subject, text_body, html_body = self.build_message(
            to_email=to_email,
            course_title=course_title,
            temporary_password=temporary_password,
        )

        try:
            response = await asyncio.wait_for(
                self.client.send_email(
                    from_email=self.settings.resend_from_email,
                    to_emails=[to_email],
                    subject=subject,
                    html=html_body,
                    text=text_body,
                    reply_to=self.settings.resend_reply_to or None,
                ),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            await logger.aerror(
                "assign_email_failed",
                to_email=to_email,
                error=f"timed out after {self.timeout_seconds}s",
            )
            return False
        except ResendClientError as exc:
            await logger.aerror("assign_email_failed", to_email=to_email, error=str(exc))
            return False

        await logger.ainfo(
            "assign_email_sent",
            to_email=to_email,
            resend_id=response.id,
            with_credentials=temporary_password is not None,
        )
        return True

    def build_message(
        self,
        *,
        to_email: str,
        course_title: str,
        temporary_password: str | None,
    ) -> tuple[str, str, str]:
        """Return ``(subject, text, html)`` for the matching variant."""
        login_url = self.settings.login_url

        if temporary_password:
            subject = f"Your LMS account & course: {course_title}"
            text_lines = [
                "Hello,",
                f'You have been added to the LMS and assigned the course "{course_title}".',
                "",
                f"Email: {to_email}",
                f"Temporary password: {temporary_password}",
                f"Login: {login_url}",
                "",
                "Please change your password on first login.",
            ]
            account_html = (
                "<p>We created an account for you or set a temporary password. Use the "
                "credentials below to sign in and <strong>please change your password on "
                "first login</strong>.</p>"
                "<table role=\"presentation\">"
                f"<tr><td><strong>Email</strong></td><td>{escape(to_email)}</td></tr>"
                "<tr><td><strong>Temporary password</strong></td>"
                f"<td>{escape(temporary_password)}</td></tr>"
                "</table>"
            )
        else:
            subject = f"New course assigned: {course_title}"
            text_lines = [
                "Hello,",
                f'You have been assigned the course "{course_title}".',
                f"Login: {login_url}",
            ]
            account_html = (
                "<p>You can sign in to start the course using your existing account.</p>"
            )

        text_lines.extend(["", "Regards,", "LMS Team"])
        text_body = "\n".join(text_lines)

        html_body = (
            "<div>"
            "<h2>Hello,</h2>"
            "<p>You have been assigned the course "
            f"<strong>{escape(course_title)}</strong> in the LMS.</p>"
            f"{account_html}"
            f'<p><a href="{escape(login_url)}">Go to Login</a></p>'
            "<p>If you have trouble signing in, reply to this email or contact your admin.</p>"
            "<p>Regards,<br>LMS Team</p>"
            "</div>"
        )
        return subject, text_body, html_body
