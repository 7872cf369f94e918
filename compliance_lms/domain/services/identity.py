"""
Identity resolution for assignment references.

A reference is whatever the admin UI submitted for an employee: a user id, an employee
roster id, or an opaque key paired with an email in the batch's email map. Resolution
tries an ordered list of strategies and stops at the first one that yields a user.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass

import structlog
from compliance_lms.infrastructure.db.models import UserModel
from compliance_lms.infrastructure.repositories.learning_store import LearningStore
from email_validator import EmailNotValidError, validate_email

logger = structlog.get_logger(__name__)


def normalize_email(value: str | None) -> str | None:
    """Canonical lookup form of an email; blank values become ``None``.

    Valid addresses take email-validator's normalized form (NFC, unquoted local part) so
    lookups match the addresses provisioning stores. Everything is lower-cased.
    """
    if value is None:
        return None
    candidate = unicodedata.normalize("NFC", str(value).strip())
    if not candidate:
        return None
    try:
        candidate = validate_email(candidate, check_deliverability=False).normalized
    except EmailNotValidError:
        pass
    return candidate.lower()


@dataclass(slots=True)
class ResolutionContext:
    """Mutable state shared by the strategies for one reference."""

    reference: str
    # Best email known so far; strategies may fill it in for later provisioning
    email: str | None = None


@dataclass(slots=True)
class Resolution:
    """Outcome of resolving one reference."""

    reference: str
    user: UserModel | None
    email: str | None
    strategy: str | None = None

    @property
    def resolved(self) -> bool:
        return self.user is not None


ResolverStrategy = Callable[[LearningStore, ResolutionContext], Awaitable[UserModel | None]]


async def by_user_id(store: LearningStore, context: ResolutionContext) -> UserModel | None:
    return await store.get_user(context.reference)


async def by_mapped_email(store: LearningStore, context: ResolutionContext) -> UserModel | None:
    if not context.email:
        return None
    return await store.get_user_by_email(context.email)


async def by_employee_record(store: LearningStore, context: ResolutionContext) -> UserModel | None:
    """Follow an employee roster row to its linked user, or to a user with its email.

    The roster email only fills the context when the batch did not supply one, so a
    later provisioning step can still create the account from it.
    """
    employee = await store.get_employee(context.reference)
    if employee is None:
        return None

    if employee.user_id:
        user = await store.get_user(employee.user_id)
        if user is not None:
            return user

    roster_email = normalize_email(employee.email)
    if roster_email and not context.email:
        context.email = roster_email
        return await store.get_user_by_email(roster_email)
    return None


DEFAULT_STRATEGIES: tuple[tuple[str, ResolverStrategy], ...] = (
    ("user_id", by_user_id),
    ("mapped_email", by_mapped_email),
    ("employee_record", by_employee_record),
)


class IdentityResolver:
    """Map an employee reference to a canonical user record.

    Not-found is never an error; store failures (``StoreError``) propagate so the caller
    can fail this reference alone.
    """

    def __init__(
        self,
        store: LearningStore,
        strategies: Sequence[tuple[str, ResolverStrategy]] = DEFAULT_STRATEGIES,
    ) -> None:
        self.store = store
        self.strategies = tuple(strategies)

    async def resolve(
        self, reference: str, email_map: Mapping[str, str | None] | None = None
    ) -> Resolution:
        context = ResolutionContext(
            reference=reference,
            email=normalize_email((email_map or {}).get(reference)),
        )

        for name, strategy in self.strategies:
            user = await strategy(self.store, context)
            if user is not None:
                await logger.ainfo(
                    "assign_reference_resolved",
                    reference=reference,
                    strategy=name,
                    user_id=user.id,
                )
                return Resolution(
                    reference=reference,
                    user=user,
                    email=context.email or user.email,
                    strategy=name,
                )

        await logger.ainfo(
            "assign_reference_unresolved",
            reference=reference,
            has_email=context.email is not None,
        )
        return Resolution(reference=reference, user=None, email=context.email)
