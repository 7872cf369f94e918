"""Domain layer: authenticated actors and assignment services."""

from compliance_lms.domain.models import User

__all__ = ["User"]
