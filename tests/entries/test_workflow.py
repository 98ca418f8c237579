from __future__ import annotations

import uuid
from datetime import date, datetime

import pytest

from src.timesheet_approval.timesheet_approval.core.enums import DeletionMode, EntryType, HistoryStatus, Role
from src.timesheet_approval.timesheet_approval.core.exceptions import AuthorizationError, LockedError, ValidationError
from src.timesheet_approval.timesheet_approval.entries.model import EntryPatch, NewTimeEntry, TimeEntry
from src.timesheet_approval.timesheet_approval.entries.workflow import WorkflowEngine
from src.timesheet_approval.timesheet_approval.users.model import Actor, UserSettings
from tests.fakes import ADMIN, OFFICE, OWNER, PEER, TRUSTED

NOW = datetime(2024, 3, 4, 9, 30, 0)
DAY = date(2024, 3, 1)

trusted = UserSettings(user_id=TRUSTED, display_name="Tina", role=Role.INSTALLER, require_confirmation=False)
strict = UserSettings(user_id=OWNER, display_name="Ingo", role=Role.INSTALLER, require_confirmation=True)

admin = Actor(user_id=ADMIN, role=Role.ADMIN)
office = Actor(user_id=OFFICE, role=Role.OFFICE)
peer = Actor(user_id=PEER, role=Role.INSTALLER)


def _entry(**overrides) -> TimeEntry:
    values = dict(entry_id=str(uuid.uuid4()), user_id=TRUSTED, work_date=DAY, entry_type=EntryType.COMPANY, hours=8.0)
    values.update(overrides)
    return TimeEntry(**values)


def _create(engine, draft, *, actor, owner, locked=frozenset()):
    return engine.plan_create(draft, actor=actor, owner=owner, locked_days=locked, now=NOW)


def test_create_auto_confirms_low_risk_type_for_trusted_owner():
    fields = _create(
        WorkflowEngine(),
        NewTimeEntry(work_date=DAY, entry_type=EntryType.COMPANY, hours=8),
        actor=Actor.from_settings(trusted),
        owner=trusted,
    )

    assert fields["submitted"] is True
    assert fields["confirmed_by"] == TRUSTED
    assert fields["confirmed_at"] == NOW


@pytest.mark.parametrize(
    "draft,owner",
    [
        (NewTimeEntry(work_date=DAY, entry_type=EntryType.WORK, hours=8), trusted),
        (NewTimeEntry(work_date=DAY, entry_type=EntryType.OFFICE, hours=8), strict),
        (NewTimeEntry(work_date=DAY, entry_type=EntryType.CAR, hours=1, responsible_user_id=PEER), trusted),
    ],
)
def test_create_stays_draft_when_not_eligible(draft, owner):
    fields = _create(WorkflowEngine(), draft, actor=Actor.from_settings(owner), owner=owner)

    assert fields["submitted"] is False
    assert fields.get("confirmed_at") is None


def test_late_entry_is_never_auto_confirmed_for_non_admin():
    fields = _create(
        WorkflowEngine(),
        NewTimeEntry(work_date=DAY, entry_type=EntryType.WAREHOUSE, hours=4, late_reason="vergessen"),
        actor=Actor.from_settings(trusted),
        owner=trusted,
    )

    assert fields["submitted"] is False
    assert fields.get("confirmed_at") is None
    assert fields["late_reason"] == "vergessen"


def test_late_entry_created_by_admin_keeps_auto_confirmation():
    fields = _create(
        WorkflowEngine(),
        NewTimeEntry(work_date=DAY, entry_type=EntryType.COMPANY, hours=4, late_reason="nachgetragen"),
        actor=admin,
        owner=trusted,
    )

    assert fields["submitted"] is True
    assert fields["confirmed_by"] == ADMIN


def test_create_on_locked_day_is_refused():
    with pytest.raises(LockedError) as exc:
        _create(
            WorkflowEngine(),
            NewTimeEntry(work_date=DAY, entry_type=EntryType.WORK, hours=8),
            actor=Actor.from_settings(strict),
            owner=strict,
            locked=frozenset({DAY}),
        )
    assert exc.value.locked_date == DAY
    assert exc.value.user_id == OWNER


def test_installer_cannot_create_for_someone_else():
    with pytest.raises(AuthorizationError):
        _create(WorkflowEngine(), NewTimeEntry(work_date=DAY, entry_type=EntryType.WORK, hours=8), actor=peer, owner=strict)


def test_office_can_create_for_owner():
    fields = _create(WorkflowEngine(), NewTimeEntry(work_date=DAY, entry_type=EntryType.WORK, hours=8), actor=office, owner=strict)
    assert fields["submitted"] is False


def test_surcharge_only_for_emergency_service():
    engine = WorkflowEngine()
    with pytest.raises(ValidationError):
        _create(engine, NewTimeEntry(work_date=DAY, entry_type=EntryType.WORK, hours=2, surcharge=25), actor=admin, owner=strict)

    fields = _create(
        engine,
        NewTimeEntry(work_date=DAY, entry_type=EntryType.EMERGENCY_SERVICE, hours=2, surcharge=25),
        actor=admin,
        owner=strict,
    )
    assert fields["surcharge"] == 25


def test_negative_hours_are_rejected():
    with pytest.raises(ValidationError):
        _create(WorkflowEngine(), NewTimeEntry(work_date=DAY, entry_type=EntryType.WORK, hours=-1), actor=admin, owner=strict)


def test_non_owner_update_requires_reason():
    engine = WorkflowEngine()
    entry = _entry()
    for reason in (None, "", "   "):
        with pytest.raises(ValidationError):
            engine.plan_update(
                entry, EntryPatch(hours=7.5), actor=office, owner=trusted, locked_days=frozenset(), reason=reason, now=NOW
            )


def test_non_owner_update_marks_change_unacknowledged():
    plan = WorkflowEngine().plan_update(
        _entry(submitted=True, confirmed_by=TRUSTED, confirmed_at=NOW),
        EntryPatch(hours=7.5),
        actor=office,
        owner=trusted,
        locked_days=frozenset(),
        reason="Pause vergessen",
        now=NOW,
    )

    assert plan.is_owner is False
    assert plan.fields["last_changed_by"] == OFFICE
    assert plan.fields["change_reason"] == "Pause vergessen"
    assert plan.fields["change_confirmed_by_user"] is False
    assert plan.fields["rejected_at"] is None
    assert plan.history_status == HistoryStatus.PENDING
    assert plan.history_reason == "Pause vergessen"
    assert plan.requested == {"hours": 7.5}


def test_owner_update_is_self_acknowledged_with_default_reason():
    plan = WorkflowEngine().plan_update(
        _entry(),
        EntryPatch(note="Baustelle Nord"),
        actor=Actor.from_settings(trusted),
        owner=trusted,
        locked_days=frozenset(),
        reason=None,
        now=NOW,
    )

    assert plan.fields["change_confirmed_by_user"] is True
    assert plan.fields["change_reason"] is None
    assert "last_changed_by" not in plan.fields
    assert plan.history_status == HistoryStatus.CONFIRMED
    assert plan.history_reason == "Eigenbearbeitung"


def test_owner_edit_reason_is_configurable():
    plan = WorkflowEngine(owner_edit_reason="Self edit").plan_update(
        _entry(),
        EntryPatch(note="x"),
        actor=Actor.from_settings(trusted),
        owner=trusted,
        locked_days=frozenset(),
        reason="",
        now=NOW,
    )
    assert plan.history_reason == "Self edit"


def test_correction_of_rejected_entry_is_never_auto_confirmed():
    rejected = _entry(rejected_by=OFFICE, rejected_at=NOW, rejection_reason="zu viel", responsible_user_id=None)

    plan = WorkflowEngine().plan_update(
        rejected,
        EntryPatch(hours=6),
        actor=Actor.from_settings(trusted),
        owner=trusted,
        locked_days=frozenset(),
        reason=None,
        now=NOW,
    )

    assert plan.fields["submitted"] is False
    assert "confirmed_at" not in plan.fields
    assert plan.fields["rejected_by"] is None
    assert plan.fields["rejected_at"] is None
    assert plan.fields["rejection_reason"] is None


def test_update_restores_delegation_cleared_by_reviewer_rejection():
    rejected = _entry(user_id=OWNER, rejected_by=PEER, rejected_at=NOW, rejection_reason="falsch")

    plan = WorkflowEngine().plan_update(
        rejected,
        EntryPatch(hours=6),
        actor=Actor.from_settings(strict),
        owner=strict,
        locked_days=frozenset(),
        reason=None,
        now=NOW,
    )

    assert plan.fields["responsible_user_id"] == PEER


def test_update_keeps_explicit_responsible_user():
    rejected = _entry(user_id=OWNER, rejected_by=PEER, rejected_at=NOW)

    plan = WorkflowEngine().plan_update(
        rejected,
        EntryPatch(responsible_user_id=OFFICE),
        actor=Actor.from_settings(strict),
        owner=strict,
        locked_days=frozenset(),
        reason=None,
        now=NOW,
    )

    assert plan.fields["responsible_user_id"] == OFFICE


def test_update_checks_both_current_and_target_date_locks():
    engine = WorkflowEngine()
    entry = _entry()
    target = date(2024, 3, 2)

    with pytest.raises(LockedError):
        engine.plan_update(
            entry, EntryPatch(hours=1), actor=admin, owner=trusted, locked_days=frozenset({DAY}), reason="x", now=NOW
        )
    with pytest.raises(LockedError) as exc:
        engine.plan_update(
            entry, EntryPatch(work_date=target), actor=admin, owner=trusted, locked_days=frozenset({target}), reason="x", now=NOW
        )
    assert exc.value.locked_date == target


def test_empty_patch_is_rejected():
    with pytest.raises(ValidationError):
        WorkflowEngine().plan_update(
            _entry(), EntryPatch(), actor=admin, owner=trusted, locked_days=frozenset(), reason="x", now=NOW
        )


def test_deleted_entry_cannot_be_updated():
    with pytest.raises(ValidationError):
        WorkflowEngine().plan_update(
            _entry(is_deleted=True), EntryPatch(hours=4), actor=admin, owner=trusted, locked_days=frozenset(), reason="x", now=NOW
        )


@pytest.mark.parametrize("late_reason", [None, "", "anderer Grund"])
def test_owner_cannot_change_late_reason_of_unconfirmed_entry(late_reason):
    late = _entry(late_reason="vergessen")

    with pytest.raises(AuthorizationError):
        WorkflowEngine().plan_update(
            late,
            EntryPatch(late_reason=late_reason),
            actor=Actor.from_settings(trusted),
            owner=trusted,
            locked_days=frozenset(),
            reason=None,
            now=NOW,
        )


def test_admin_may_clear_late_reason_of_unconfirmed_entry():
    plan = WorkflowEngine().plan_update(
        _entry(late_reason="vergessen"),
        EntryPatch(late_reason=None),
        actor=admin,
        owner=trusted,
        locked_days=frozenset(),
        reason="nachgetragen",
        now=NOW,
    )
    assert plan.fields["late_reason"] is None


def test_clearing_late_reason_of_confirmed_entry_does_not_auto_confirm_again():
    confirmed = _entry(late_reason="vergessen", confirmed_by=ADMIN, confirmed_at=NOW)

    plan = WorkflowEngine().plan_update(
        confirmed,
        EntryPatch(late_reason=None, hours=7),
        actor=Actor.from_settings(trusted),
        owner=trusted,
        locked_days=frozenset(),
        reason=None,
        now=NOW,
    )

    assert plan.fields["submitted"] is False
    assert "confirmed_by" not in plan.fields
    assert "confirmed_at" not in plan.fields


def test_late_entry_confirm_requires_admin():
    engine = WorkflowEngine()
    late = _entry(user_id=OWNER, late_reason="vergessen")

    with pytest.raises(AuthorizationError):
        engine.plan_confirm(late, actor=office, authorized=True, now=NOW)

    fields = engine.plan_confirm(late, actor=admin, authorized=True, now=NOW)
    assert fields["submitted"] is True
    assert fields["confirmed_by"] == ADMIN
    assert fields["confirmed_at"] == NOW


def test_confirm_clears_rejection_and_respects_authorization():
    engine = WorkflowEngine()
    entry = _entry(rejected_by=OFFICE, rejected_at=NOW, rejection_reason="x")

    with pytest.raises(AuthorizationError):
        engine.plan_confirm(entry, actor=peer, authorized=False, now=NOW)

    fields = engine.plan_confirm(entry, actor=office, authorized=True, now=NOW)
    assert fields["rejected_by"] is None
    assert fields["rejection_reason"] is None
    assert "submitted" not in fields


def test_reject_requires_reason_and_clears_confirmation_and_deletion_request():
    engine = WorkflowEngine()
    entry = _entry(
        confirmed_by=TRUSTED,
        confirmed_at=NOW,
        deletion_requested_at=NOW,
        deletion_requested_by=OFFICE,
        deletion_request_reason="doppelt",
    )

    with pytest.raises(ValidationError):
        engine.plan_reject(entry, actor=office, authorized=True, reason=" ", now=NOW)

    plan = engine.plan_reject(entry, actor=office, authorized=True, reason="falsche Stunden", now=NOW)
    assert plan.fields["rejected_by"] == OFFICE
    assert plan.fields["confirmed_at"] is None
    assert plan.fields["deletion_requested_at"] is None
    assert plan.fields["deletion_request_reason"] is None
    assert plan.clear_delegation is False


def test_reject_by_delegated_reviewer_clears_delegation():
    plan = WorkflowEngine().plan_reject(
        _entry(user_id=OWNER, responsible_user_id=PEER), actor=peer, authorized=True, reason="nein", now=NOW
    )
    assert plan.clear_delegation is True


def test_deletion_mode_follows_owner_and_submission():
    engine = WorkflowEngine()
    draft = _entry(user_id=OWNER, submitted=False)
    owner_actor = Actor.from_settings(strict)

    hard = engine.plan_delete(draft, actor=owner_actor, locked_days=frozenset(), reason=None, now=NOW)
    assert hard.mode == DeletionMode.HARD

    submitted = _entry(user_id=OWNER, submitted=True)
    with pytest.raises(ValidationError):
        engine.plan_delete(submitted, actor=owner_actor, locked_days=frozenset(), reason=None, now=NOW)
    soft = engine.plan_delete(submitted, actor=owner_actor, locked_days=frozenset(), reason="falsch", now=NOW)
    assert soft.mode == DeletionMode.SOFT
    assert soft.fields["deletion_confirmed_by_user"] is True

    by_office = engine.plan_delete(draft, actor=office, locked_days=frozenset(), reason="doppelt", now=NOW)
    assert by_office.mode == DeletionMode.SOFT
    assert by_office.fields["deleted_by"] == OFFICE
    assert by_office.fields["deletion_confirmed_by_user"] is False


def test_delete_on_locked_day_is_refused():
    with pytest.raises(LockedError):
        WorkflowEngine().plan_delete(
            _entry(), actor=admin, locked_days=frozenset({DAY}), reason="x", now=NOW
        )


def test_bulk_submit_filters_per_item():
    engine = WorkflowEngine()
    ok = _entry(user_id=OWNER)
    late_open = _entry(user_id=OWNER, late_reason="vergessen")
    late_confirmed = _entry(user_id=OWNER, late_reason="vergessen", confirmed_at=NOW)
    deleted = _entry(user_id=OWNER, is_deleted=True)
    locked = _entry(user_id=OWNER, work_date=date(2024, 2, 29))
    unknown = str(uuid.uuid4())

    entries = {e.entry_id: e for e in (ok, late_open, late_confirmed, deleted, locked)}
    plan = engine.plan_bulk_submit(
        ["not-an-id", 42, ok.entry_id, ok.entry_id, late_open.entry_id, late_confirmed.entry_id,
         deleted.entry_id, locked.entry_id, unknown],
        actor=Actor.from_settings(strict),
        entries=entries,
        owners={OWNER: strict},
        locked_days={OWNER: frozenset({date(2024, 2, 29)})},
        now=NOW,
    )

    assert plan.accepted_ids == (ok.entry_id, late_confirmed.entry_id)
    assert len(plan.batches) == 1
    assert plan.batches[0].fields == {"submitted": True, "updated_at": NOW}


def test_bulk_submit_stamps_confirmation_for_trusted_owner_regardless_of_type():
    work = _entry(entry_type=EntryType.WORK)
    sick = _entry(entry_type=EntryType.SICK)
    rejected = _entry(rejected_at=NOW, rejected_by=OFFICE)

    plan = WorkflowEngine().plan_bulk_submit(
        [work.entry_id, sick.entry_id, rejected.entry_id],
        actor=Actor.from_settings(trusted),
        entries={e.entry_id: e for e in (work, sick, rejected)},
        owners={TRUSTED: trusted},
        locked_days={},
        now=NOW,
    )

    by_ids = {b.entry_ids: b.fields for b in plan.batches}
    assert by_ids[(work.entry_id, sick.entry_id)]["confirmed_at"] == NOW
    assert "confirmed_at" not in by_ids[(rejected.entry_id,)]


def test_bulk_submit_skips_entries_of_other_owners_for_installers():
    own = _entry(user_id=PEER)
    foreign = _entry(user_id=OWNER)
    entries = {e.entry_id: e for e in (own, foreign)}
    owners = {PEER: UserSettings(user_id=PEER, display_name="Paul", role=Role.INSTALLER), OWNER: strict}

    plan = WorkflowEngine().plan_bulk_submit(
        [own.entry_id, foreign.entry_id], actor=peer, entries=entries, owners=owners, locked_days={}, now=NOW
    )
    assert plan.accepted_ids == (own.entry_id,)

    plan = WorkflowEngine().plan_bulk_submit(
        [own.entry_id, foreign.entry_id], actor=office, entries=entries, owners=owners, locked_days={}, now=NOW
    )
    assert plan.accepted_ids == (own.entry_id, foreign.entry_id)
