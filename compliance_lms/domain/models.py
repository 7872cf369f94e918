from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class User:
    """Represents an authenticated actor within the system."""

    user_id: str
    email: str = ""
    roles: list[str] = field(default_factory=list)

    def has_any_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)
