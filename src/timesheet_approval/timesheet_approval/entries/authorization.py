from __future__ import annotations

from typing import Protocol

from ..core.constants import REVIEWER_ROLES
from ..core.enums import Role
from ..users.model import Actor
from .model import TimeEntry


class ReviewerAuthorization(Protocol):
    """Answers "may this actor review this entry?" as a plain boolean."""

    def can_review(self, *, entry: TimeEntry, actor: Actor) -> bool:
        raise NotImplementedError


class RoleReviewerAuthorization:
    """Default policy: admins review everything, office reviews other people's
    entries, and a delegated peer reviewer reviews the entries assigned to them.
    """

    def can_review(self, *, entry: TimeEntry, actor: Actor) -> bool:
        if actor.role == Role.ADMIN:
            return True
        if actor.user_id == entry.user_id:
            return False
        if actor.role in REVIEWER_ROLES:
            return True
        return bool(entry.responsible_user_id) and entry.responsible_user_id == actor.user_id
