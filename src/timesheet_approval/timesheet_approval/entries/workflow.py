"""Time-entry approval state machine.

The engine is pure: it receives the entry snapshot the caller just read, the
acting user, the owner's settings and the owner's locked days, and returns the
field values to persist (or raises). It never reads or writes storage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import AbstractSet, Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..common.validators import is_valid_entry_id, optional_text, require_non_empty, require_non_negative
from ..core.constants import AUTO_CONFIRM_TYPES, OWNER_EDIT_REASON, REVIEWER_ROLES, SURCHARGE_TYPES
from ..core.enums import EntryType, HistoryStatus
from ..core.exceptions import AuthorizationError, LockedError, ValidationError
from ..users.model import Actor, UserSettings
from .deletion.base import DeletionDecision
from .deletion.factory import DeletionStrategyFactory
from .model import EntryPatch, NewTimeEntry, TimeEntry

_CLEARED_REJECTION = {"rejected_by": None, "rejected_at": None, "rejection_reason": None}
_CLEARED_DELETION_REQUEST = {
    "deletion_requested_at": None,
    "deletion_requested_by": None,
    "deletion_request_reason": None,
}


@dataclass(frozen=True)
class UpdatePlan:
    fields: Dict[str, Any]
    requested: Dict[str, Any]
    is_owner: bool
    history_status: HistoryStatus
    history_reason: str


@dataclass(frozen=True)
class RejectPlan:
    fields: Dict[str, Any]
    clear_delegation: bool


@dataclass(frozen=True)
class SubmitBatch:
    entry_ids: Tuple[str, ...]
    fields: Dict[str, Any]


@dataclass(frozen=True)
class BulkSubmitPlan:
    accepted_ids: Tuple[str, ...]
    batches: Tuple[SubmitBatch, ...] = field(default_factory=tuple)


class WorkflowEngine:
    def __init__(
        self,
        *,
        auto_confirm_types: Iterable[EntryType] = AUTO_CONFIRM_TYPES,
        deletion_factory: DeletionStrategyFactory | None = None,
        owner_edit_reason: str = OWNER_EDIT_REASON,
    ):
        self._auto_confirm_types = frozenset(auto_confirm_types)
        self._deletion_factory = deletion_factory or DeletionStrategyFactory()
        self._owner_edit_reason = owner_edit_reason

    # -------- Preconditions --------
    @staticmethod
    def ensure_unlocked(*, user_id: str, locked_days: AbstractSet[date], dates: Iterable[date]) -> None:
        for day in dates:
            if day in locked_days:
                raise LockedError(f"Day {day.isoformat()} is locked", user_id=user_id, locked_date=day)

    @staticmethod
    def ensure_acts_for(*, actor: Actor, owner_id: str) -> None:
        if actor.user_id != owner_id and actor.role not in REVIEWER_ROLES:
            raise AuthorizationError("Only office or admin users can act on other users' entries")

    @staticmethod
    def _validate_content(*, entry_type: EntryType, hours: Any, surcharge: Optional[int]) -> None:
        require_non_negative(hours, "Hours")
        if surcharge is not None and entry_type not in SURCHARGE_TYPES:
            raise ValidationError("Surcharge is only allowed for emergency service entries")

    def is_auto_confirm_eligible(
        self,
        *,
        owner: UserSettings,
        entry_type: EntryType,
        responsible_user_id: Optional[str],
        currently_rejected: bool = False,
    ) -> bool:
        # A correction of a rejected entry always goes back to manual review.
        return (
            owner.require_confirmation is False
            and entry_type in self._auto_confirm_types
            and not responsible_user_id
            and not currently_rejected
        )

    @staticmethod
    def _confirmation_fields(*, eligible: bool, actor: Actor, late_reason: Optional[str], now: datetime) -> Dict[str, Any]:
        if eligible:
            result: Dict[str, Any] = {"submitted": True, "confirmed_by": actor.user_id, "confirmed_at": now}
        else:
            result = {"submitted": False}

        # Late entries stay unconfirmed drafts unless an admin is acting.
        if late_reason and not actor.is_admin:
            result = {"submitted": False}
        return result

    # -------- Create --------
    def plan_create(
        self,
        draft: NewTimeEntry,
        *,
        actor: Actor,
        owner: UserSettings,
        locked_days: AbstractSet[date],
        now: datetime,
    ) -> Dict[str, Any]:
        self.ensure_acts_for(actor=actor, owner_id=owner.user_id)
        self.ensure_unlocked(user_id=owner.user_id, locked_days=locked_days, dates=[draft.work_date])
        self._validate_content(entry_type=draft.entry_type, hours=draft.hours, surcharge=draft.surcharge)

        late_reason = optional_text(draft.late_reason, "Late reason")
        eligible = self.is_auto_confirm_eligible(
            owner=owner,
            entry_type=draft.entry_type,
            responsible_user_id=draft.responsible_user_id,
        )

        fields = draft.to_fields()
        fields["hours"] = float(draft.hours)
        fields["late_reason"] = late_reason
        fields["responsible_user_id"] = optional_text(draft.responsible_user_id, "Responsible user")
        fields.update(self._confirmation_fields(eligible=eligible, actor=actor, late_reason=late_reason, now=now))
        fields["created_at"] = now
        fields["updated_at"] = now
        return fields

    # -------- Update --------
    def plan_update(
        self,
        entry: TimeEntry,
        patch: EntryPatch,
        *,
        actor: Actor,
        owner: UserSettings,
        locked_days: AbstractSet[date],
        reason: Optional[str],
        now: datetime,
    ) -> UpdatePlan:
        if patch.is_empty():
            raise ValidationError("Nothing to update")
        if entry.is_deleted:
            raise ValidationError("Deleted entries cannot be updated")

        dates = [entry.work_date]
        if patch.supplies("work_date"):
            dates.append(patch.work_date)
        self.ensure_unlocked(user_id=entry.user_id, locked_days=locked_days, dates=dates)

        is_owner = actor.user_id == entry.user_id
        if is_owner:
            tracking: Dict[str, Any] = {"change_confirmed_by_user": True, "change_reason": None}
            history_reason = optional_text(reason, "Change reason") or self._owner_edit_reason
        else:
            reason = require_non_empty(reason, "Change reason")
            tracking = {
                "last_changed_by": actor.user_id,
                "change_reason": reason,
                "change_confirmed_by_user": False,
            }
            history_reason = reason
        tracking["updated_at"] = now

        # Only an admin may drop or reword the late flag while it still awaits confirmation.
        if (
            entry.is_late
            and not entry.is_confirmed
            and patch.supplies("late_reason")
            and optional_text(patch.late_reason, "Late reason") != entry.late_reason
            and not actor.is_admin
        ):
            raise AuthorizationError("Only an admin can change the late reason of an unconfirmed entry")

        requested = patch.changes()
        resulting = entry.merged(requested)
        self._validate_content(entry_type=resulting.entry_type, hours=resulting.hours, surcharge=resulting.surcharge)

        # The delegated rejection channel may have dropped the reviewer; put it back.
        restored: Dict[str, Any] = {}
        if entry.rejected_by and not requested.get("responsible_user_id") and not entry.responsible_user_id:
            restored = {"responsible_user_id": entry.rejected_by}
        responsible = restored.get("responsible_user_id", resulting.responsible_user_id)

        eligible = self.is_auto_confirm_eligible(
            owner=owner,
            entry_type=resulting.entry_type,
            responsible_user_id=responsible,
            currently_rejected=entry.is_rejected,
        )
        confirmation = self._confirmation_fields(
            eligible=eligible,
            actor=actor,
            late_reason=entry.late_reason or resulting.late_reason,
            now=now,
        )

        fields = {**requested, **confirmation, **tracking, **_CLEARED_REJECTION, **restored}
        return UpdatePlan(
            fields=fields,
            requested=requested,
            is_owner=is_owner,
            history_status=HistoryStatus.CONFIRMED if is_owner else HistoryStatus.PENDING,
            history_reason=history_reason,
        )

    # -------- Confirm / Reject --------
    def plan_confirm(self, entry: TimeEntry, *, actor: Actor, authorized: bool, now: datetime) -> Dict[str, Any]:
        if entry.is_deleted:
            raise ValidationError("Deleted entries cannot be confirmed")
        if entry.is_late and not actor.is_admin:
            raise AuthorizationError("Late entries can only be confirmed by an admin")
        if not authorized:
            raise AuthorizationError("Not allowed to confirm this entry")

        fields: Dict[str, Any] = {"confirmed_by": actor.user_id, "confirmed_at": now, **_CLEARED_REJECTION}
        if entry.is_late:
            # A late entry becomes submitted only at the moment an admin confirms it.
            fields["submitted"] = True
        return fields

    def plan_reject(
        self,
        entry: TimeEntry,
        *,
        actor: Actor,
        authorized: bool,
        reason: Optional[str],
        now: datetime,
    ) -> RejectPlan:
        reason = require_non_empty(reason, "Rejection reason")
        if entry.is_deleted:
            raise ValidationError("Deleted entries cannot be rejected")
        if not authorized:
            raise AuthorizationError("Not allowed to reject this entry")

        fields = {
            "rejected_by": actor.user_id,
            "rejected_at": now,
            "rejection_reason": reason,
            "confirmed_by": None,
            "confirmed_at": None,
            **_CLEARED_DELETION_REQUEST,
        }
        clear_delegation = bool(entry.responsible_user_id) and entry.responsible_user_id == actor.user_id
        return RejectPlan(fields=fields, clear_delegation=clear_delegation)

    # -------- Deletion --------
    def plan_delete(
        self,
        entry: TimeEntry,
        *,
        actor: Actor,
        locked_days: AbstractSet[date],
        reason: Optional[str],
        now: datetime,
    ) -> DeletionDecision:
        self.ensure_unlocked(user_id=entry.user_id, locked_days=locked_days, dates=[entry.work_date])
        if entry.is_deleted:
            raise ValidationError("Entry is already deleted")
        strategy = self._deletion_factory.for_entry(entry=entry, actor_id=actor.user_id)
        return strategy.decide(entry=entry, actor_id=actor.user_id, reason=reason, now=now)

    def plan_deletion_request(
        self,
        entry: TimeEntry,
        *,
        actor: Actor,
        locked_days: AbstractSet[date],
        reason: Optional[str],
        now: datetime,
    ) -> Dict[str, Any]:
        self.ensure_unlocked(user_id=entry.user_id, locked_days=locked_days, dates=[entry.work_date])
        reason = require_non_empty(reason, "Deletion reason")
        if actor.user_id == entry.user_id:
            raise ValidationError("Owners delete their own entries directly")
        if actor.role not in REVIEWER_ROLES:
            raise AuthorizationError("Only office or admin users can request a deletion")
        if entry.is_deleted:
            raise ValidationError("Entry is already deleted")
        return {
            "deletion_requested_at": now,
            "deletion_requested_by": actor.user_id,
            "deletion_request_reason": reason,
        }

    # -------- Bulk submission --------
    def plan_bulk_submit(
        self,
        entry_ids: Sequence[object],
        *,
        actor: Actor,
        entries: Mapping[str, TimeEntry],
        owners: Mapping[str, UserSettings],
        locked_days: Mapping[str, AbstractSet[date]],
        now: datetime,
    ) -> BulkSubmitPlan:
        """Per-item filtering: anything that may not be submitted is left out silently."""

        accepted: List[str] = []
        plain: List[str] = []
        auto_confirmed: List[str] = []

        for raw in entry_ids:
            if not is_valid_entry_id(raw) or raw in accepted:
                continue
            entry = entries.get(str(raw))
            if entry is None or entry.is_deleted:
                continue
            if actor.user_id != entry.user_id and actor.role not in REVIEWER_ROLES:
                continue
            # Owners never submit a late entry themselves; admin confirmation does that.
            if entry.is_late and not entry.is_confirmed:
                continue
            if entry.work_date in locked_days.get(entry.user_id, frozenset()):
                continue

            accepted.append(entry.entry_id)
            owner = owners.get(entry.user_id) or UserSettings.defaults_for(entry.user_id)
            # Keyed on the owner setting only; a rejected entry is never stamped confirmed.
            if owner.require_confirmation is False and not entry.is_rejected:
                auto_confirmed.append(entry.entry_id)
            else:
                plain.append(entry.entry_id)

        batches: List[SubmitBatch] = []
        if plain:
            batches.append(SubmitBatch(entry_ids=tuple(plain), fields={"submitted": True, "updated_at": now}))
        if auto_confirmed:
            batches.append(
                SubmitBatch(
                    entry_ids=tuple(auto_confirmed),
                    fields={"submitted": True, "confirmed_at": now, "updated_at": now},
                )
            )
        return BulkSubmitPlan(accepted_ids=tuple(accepted), batches=tuple(batches))
