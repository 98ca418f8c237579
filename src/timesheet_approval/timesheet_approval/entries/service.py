from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Optional, Sequence

from ..common.datetime_utils import now_local
from ..common.validators import require_entry_id
from ..core.constants import ENTRIES_TABLE, HISTORY_TABLE
from ..core.enums import DeletionMode, ReviewAction
from ..core.exceptions import AuthenticationError, AuthorizationError, NotFoundError, ValidationError
from ..history.model import EntryChangeHistory
from ..history.recorder import HistoryRecorder
from ..locks.repository import LockedDayRepository
from ..notifications.notifier import ChangeNotifier
from ..users.model import Actor, UserSettings
from ..users.repository import UserSettingsRepository
from .authorization import ReviewerAuthorization, RoleReviewerAuthorization
from .model import EntryPatch, NewTimeEntry, TimeEntry
from .repository import ReviewerRejectionChannel, TimeEntryRepository
from .workflow import WorkflowEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeletionResult:
    mode: DeletionMode
    entry: Optional[TimeEntry] = None


class TimeEntryService:
    """Runs the approval workflow against the entry store.

    Every operation reads the entry it acts on right before deciding, so no
    state is cached between calls; concurrent callers see last-write-wins.
    """

    def __init__(
        self,
        entries: TimeEntryRepository,
        history: HistoryRecorder,
        settings: UserSettingsRepository,
        locks: LockedDayRepository,
        notifier: ChangeNotifier,
        *,
        engine: WorkflowEngine | None = None,
        authorization: ReviewerAuthorization | None = None,
        rejection_channel: ReviewerRejectionChannel | None = None,
    ):
        self._entries = entries
        self._history = history
        self._settings = settings
        self._locks = locks
        self._notifier = notifier
        self._engine = engine or WorkflowEngine()
        self._authorization = authorization or RoleReviewerAuthorization()
        self._rejection_channel = rejection_channel

    # -------- helpers --------
    def _user_settings(self, user_id: str) -> UserSettings:
        return self._settings.get_settings(user_id) or UserSettings.defaults_for(user_id)

    def _actor(self, user_id: str) -> Actor:
        if not user_id:
            raise AuthenticationError("Acting user is required")
        settings = self._user_settings(user_id)
        if not settings.is_active:
            raise AuthorizationError(f"User {user_id} is inactive")
        return Actor.from_settings(settings)

    def _require_entry(self, entry_id: str) -> TimeEntry:
        entry = self._entries.get(require_entry_id(entry_id))
        if not entry:
            raise NotFoundError(f"Time entry {entry_id} not found")
        return entry

    def _write(self, entry_id: str, fields: dict) -> TimeEntry:
        if not self._entries.update(entry_id, fields):
            raise NotFoundError(f"Time entry {entry_id} not found")
        self._notifier.publish(ENTRIES_TABLE, entry_id)
        return self._require_entry(entry_id)

    # -------- Create --------
    def create_entry(
        self,
        draft: NewTimeEntry,
        *,
        actor_id: str,
        owner_id: Optional[str] = None,
        now: datetime | None = None,
    ) -> TimeEntry:
        now = now or now_local()
        actor = self._actor(actor_id)
        owner = self._user_settings(owner_id or actor_id)

        fields = self._engine.plan_create(
            draft,
            actor=actor,
            owner=owner,
            locked_days=self._locks.locked_dates(owner.user_id),
            now=now,
        )
        entry_id = self._entries.insert(user_id=owner.user_id, fields=fields)
        logger.info(
            "Entry created: entry_id=%s owner=%s actor=%s type=%s submitted=%s confirmed=%s",
            entry_id,
            owner.user_id,
            actor.user_id,
            draft.entry_type.value,
            fields.get("submitted"),
            fields.get("confirmed_at") is not None,
        )
        self._notifier.publish(ENTRIES_TABLE, entry_id)
        return self._require_entry(entry_id)

    # -------- Update --------
    def update_entry(
        self,
        entry_id: str,
        patch: EntryPatch,
        *,
        actor_id: str,
        reason: Optional[str] = None,
        now: datetime | None = None,
    ) -> TimeEntry:
        now = now or now_local()
        actor = self._actor(actor_id)
        entry = self._require_entry(entry_id)

        plan = self._engine.plan_update(
            entry,
            patch,
            actor=actor,
            owner=self._user_settings(entry.user_id),
            locked_days=self._locks.locked_dates(entry.user_id),
            reason=reason,
            now=now,
        )
        updated = self._write(entry.entry_id, plan.fields)

        self._history.record(
            before=entry,
            requested=plan.requested,
            changed_by=actor.user_id,
            reason=plan.history_reason,
            status=plan.history_status,
            changed_at=now,
        )
        self._notifier.publish(HISTORY_TABLE, entry.entry_id)
        logger.info(
            "Entry updated: entry_id=%s actor=%s owner_edit=%s fields=%s",
            entry.entry_id,
            actor.user_id,
            plan.is_owner,
            sorted(plan.requested),
        )
        return replace(updated, has_history=True)

    # -------- Confirm / Reject --------
    def confirm_entry(self, entry_id: str, *, actor_id: str, now: datetime | None = None) -> TimeEntry:
        now = now or now_local()
        actor = self._actor(actor_id)
        entry = self._require_entry(entry_id)

        fields = self._engine.plan_confirm(
            entry,
            actor=actor,
            authorized=self._authorization.can_review(entry=entry, actor=actor),
            now=now,
        )
        logger.info("Entry confirmed: entry_id=%s actor=%s late=%s", entry.entry_id, actor.user_id, entry.is_late)
        return self._write(entry.entry_id, fields)

    def reject_entry(
        self,
        entry_id: str,
        *,
        actor_id: str,
        reason: Optional[str],
        now: datetime | None = None,
    ) -> TimeEntry:
        now = now or now_local()
        actor = self._actor(actor_id)
        entry = self._require_entry(entry_id)

        plan = self._engine.plan_reject(
            entry,
            actor=actor,
            authorized=self._authorization.can_review(entry=entry, actor=actor),
            reason=reason,
            now=now,
        )
        if plan.clear_delegation and self._rejection_channel is not None:
            ok = self._rejection_channel.reject_and_clear_delegation(
                entry_id=entry.entry_id,
                rejected_by=actor.user_id,
                reason=plan.fields["rejection_reason"],
                rejected_at=now,
            )
            if not ok:
                raise NotFoundError(f"Time entry {entry_id} not found")
            self._notifier.publish(ENTRIES_TABLE, entry.entry_id)
            logger.info("Peer review rejected: entry_id=%s reviewer=%s", entry.entry_id, actor.user_id)
            return self._require_entry(entry.entry_id)

        logger.info("Entry rejected: entry_id=%s actor=%s", entry.entry_id, actor.user_id)
        return self._write(entry.entry_id, plan.fields)

    # -------- Deletion --------
    def delete_entry(
        self,
        entry_id: str,
        *,
        actor_id: str,
        reason: Optional[str] = None,
        now: datetime | None = None,
    ) -> DeletionResult:
        now = now or now_local()
        actor = self._actor(actor_id)
        entry = self._require_entry(entry_id)

        decision = self._engine.plan_delete(
            entry,
            actor=actor,
            locked_days=self._locks.locked_dates(entry.user_id),
            reason=reason,
            now=now,
        )
        if decision.mode == DeletionMode.HARD:
            if not self._entries.delete(entry.entry_id):
                raise NotFoundError(f"Time entry {entry_id} not found")
            self._notifier.publish(ENTRIES_TABLE, entry.entry_id)
            logger.info("Draft removed: entry_id=%s owner=%s", entry.entry_id, actor.user_id)
            return DeletionResult(mode=DeletionMode.HARD)

        updated = self._write(entry.entry_id, decision.fields)
        logger.info(
            "Entry soft-deleted: entry_id=%s actor=%s acknowledged=%s",
            entry.entry_id,
            actor.user_id,
            decision.fields["deletion_confirmed_by_user"],
        )
        return DeletionResult(mode=DeletionMode.SOFT, entry=updated)

    def request_deletion(
        self,
        entry_id: str,
        *,
        actor_id: str,
        reason: Optional[str],
        now: datetime | None = None,
    ) -> TimeEntry:
        now = now or now_local()
        actor = self._actor(actor_id)
        entry = self._require_entry(entry_id)

        fields = self._engine.plan_deletion_request(
            entry,
            actor=actor,
            locked_days=self._locks.locked_dates(entry.user_id),
            reason=reason,
            now=now,
        )
        logger.info("Deletion requested: entry_id=%s actor=%s", entry.entry_id, actor.user_id)
        return self._write(entry.entry_id, fields)

    # -------- Bulk submission --------
    def mark_submitted(self, entry_ids: Sequence[object], *, actor_id: str, now: datetime | None = None) -> list[str]:
        """Submit what may be submitted and return those ids; the rest is skipped."""

        now = now or now_local()
        actor = self._actor(actor_id)
        if not entry_ids:
            return []

        candidates = self._entries.get_many([str(i) for i in entry_ids if isinstance(i, str)])
        entries = {e.entry_id: e for e in candidates}
        owner_ids = {e.user_id for e in candidates}
        owners = {uid: self._user_settings(uid) for uid in owner_ids}

        plan = self._engine.plan_bulk_submit(
            entry_ids,
            actor=actor,
            entries=entries,
            owners=owners,
            locked_days=self._locks.locked_dates_for_users(owner_ids) if owner_ids else {},
            now=now,
        )
        for batch in plan.batches:
            self._entries.update_many(list(batch.entry_ids), batch.fields)
        for entry_id in plan.accepted_ids:
            self._notifier.publish(ENTRIES_TABLE, entry_id)

        skipped = len(entry_ids) - len(plan.accepted_ids)
        logger.info("Entries submitted: actor=%s submitted=%d skipped=%d", actor.user_id, len(plan.accepted_ids), skipped)
        return list(plan.accepted_ids)

    # -------- Reviews --------
    def list_peer_reviews(self, *, reviewer_id: str) -> Sequence[TimeEntry]:
        return self._entries.list_for_reviewer(reviewer_id=reviewer_id)

    def process_review(
        self,
        entry_id: str,
        *,
        reviewer_id: str,
        action: ReviewAction,
        reason: Optional[str] = None,
        now: datetime | None = None,
    ) -> TimeEntry:
        if action == ReviewAction.CONFIRM:
            return self.confirm_entry(entry_id, actor_id=reviewer_id, now=now)
        return self.reject_entry(entry_id, actor_id=reviewer_id, reason=reason, now=now)

    # -------- Reads --------
    def list_entries(
        self,
        *,
        user_id: str,
        viewer_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        include_deleted: bool = False,
    ) -> Sequence[TimeEntry]:
        if viewer_id is not None:
            self._engine.ensure_acts_for(actor=self._actor(viewer_id), owner_id=user_id)
        if start_date and end_date and end_date < start_date:
            raise ValidationError("End date must not be before start date")
        rows = self._entries.list_for_user(
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
            include_deleted=include_deleted,
        )
        with_history = self._history.entries_with_history(r.entry_id for r in rows)
        return [replace(r, has_history=r.entry_id in with_history) for r in rows]

    def list_pending_changes(self, *, user_id: str) -> Sequence[TimeEntry]:
        return self._entries.list_pending_changes(user_id=user_id)

    def get_history(self, entry_id: str, *, limit: int | None = None) -> Sequence[EntryChangeHistory]:
        entry = self._require_entry(entry_id)
        return self._history.list_for_entry(entry.entry_id, limit=limit)
