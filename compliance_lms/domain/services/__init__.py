"""Domain services."""

from compliance_lms.domain.services.assignment_batch import (
    Assigned,
    AssignmentBatch,
    AssignmentBatchService,
    BatchReport,
    CourseNotFoundError,
    Failed,
    ReferenceOutcome,
    Skipped,
)
from compliance_lms.domain.services.assignment_email import AssignmentNotifier
from compliance_lms.domain.services.assignments import AssignmentWriter, DuplicateGuard
from compliance_lms.domain.services.identity import IdentityResolver, Resolution
from compliance_lms.domain.services.provisioning import (
    CredentialProvisioner,
    InvalidEmailError,
    ProvisionedCredential,
    ProvisioningError,
)

__all__ = [
    "Assigned",
    "AssignmentBatch",
    "AssignmentBatchService",
    "AssignmentNotifier",
    "AssignmentWriter",
    "BatchReport",
    "CourseNotFoundError",
    "CredentialProvisioner",
    "DuplicateGuard",
    "Failed",
    "IdentityResolver",
    "InvalidEmailError",
    "ProvisionedCredential",
    "ProvisioningError",
    "ReferenceOutcome",
    "Resolution",
    "Skipped",
]
