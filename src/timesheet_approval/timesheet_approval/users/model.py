from __future__ import annotations

from dataclasses import dataclass
from ..core.constants import DEFAULT_DISPLAY_NAME, DEFAULT_REQUIRE_CONFIRMATION, DEFAULT_ROLE
from ..core.enums import Role


@dataclass(frozen=True)
class UserSettings:
    """Domain entity: the per-user settings the workflow reads.

    Note: Plain data object (no DB access code).
    """

    user_id: str
    display_name: str
    role: Role
    require_confirmation: bool = DEFAULT_REQUIRE_CONFIRMATION
    is_active: bool = True

    @classmethod
    def defaults_for(cls, user_id: str) -> "UserSettings":
        """Settings used when a user has no stored row yet."""
        return cls(user_id=user_id, display_name=DEFAULT_DISPLAY_NAME, role=DEFAULT_ROLE)


@dataclass(frozen=True)
class Actor:
    """The user performing a workflow operation."""

    user_id: str
    role: Role

    @classmethod
    def from_settings(cls, settings: UserSettings) -> "Actor":
        return cls(user_id=settings.user_id, role=settings.role)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
