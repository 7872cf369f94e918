"""Account provisioning with one-time temporary credentials."""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from compliance_lms.domain.services.auth_service import (
    generate_temporary_password,
    hash_password,
)
from compliance_lms.infrastructure.db.models import UserModel, UserRole
from compliance_lms.infrastructure.repositories.learning_store import LearningStore
from email_validator import EmailNotValidError, validate_email

logger = structlog.get_logger(__name__)


class ProvisioningError(Exception):
    """Raised when an account cannot be provisioned for a reference."""


class InvalidEmailError(ProvisioningError):
    """Raised when the address supplied for a new account is malformed."""


@dataclass(slots=True)
class ProvisionedCredential:
    """A user paired with the plaintext credential issued to them.

    The plaintext exists only in memory for delivery; the store keeps the hash.
    """

    user: UserModel
    temporary_password: str


class CredentialProvisioner:
    """Create learner accounts, or issue a credential to an account that has none."""

    def __init__(self, store: LearningStore, password_length: int | None = None) -> None:
        self.store = store
        self.password_length = password_length

    async def provision(
        self, email: str, role: UserRole = UserRole.LEARNER
    ) -> ProvisionedCredential:
        address = self._validated_email(email)
        temporary_password = generate_temporary_password(self.password_length)

        user = await self.store.add_user(
            email=address,
            hashed_password=hash_password(temporary_password),
            full_name=address.split("@", 1)[0],
            role=role,
            must_reset_password=True,
        )
        await logger.ainfo("assign_user_provisioned", user_id=user.id, role=role.value)
        return ProvisionedCredential(user=user, temporary_password=temporary_password)

    async def issue_credential(self, user: UserModel) -> ProvisionedCredential:
        """Give an existing credential-less account a temporary credential.

        Accounts that already hold a credential are refused so an assignment can never
        reset a live password as a side effect.
        """
        if user.has_credential:
            raise ProvisioningError(f"User {user.id} already has a credential")

        temporary_password = generate_temporary_password(self.password_length)
        user = await self.store.set_user_credential(
            user,
            hashed_password=hash_password(temporary_password),
            must_reset_password=True,
        )
        await logger.ainfo("assign_credential_backfilled", user_id=user.id)
        return ProvisionedCredential(user=user, temporary_password=temporary_password)

    @staticmethod
    def _validated_email(email: str) -> str:
        try:
            validated = validate_email(email.strip(), check_deliverability=False)
        except EmailNotValidError as exc:
            raise InvalidEmailError(f"Invalid email address {email!r}: {exc}") from exc
        return validated.normalized.lower()
