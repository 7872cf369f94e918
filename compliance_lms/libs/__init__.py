"""Shared library helpers."""

from compliance_lms.libs.resend_client import (
    ResendAPIError,
    ResendClient,
    ResendClientError,
    ResendEmailResponse,
)

__all__ = [
    "ResendAPIError",
    "ResendClient",
    "ResendClientError",
    "ResendEmailResponse",
]
