from datetime import date, datetime

import pytest

from src.timesheet_approval.timesheet_approval.core.enums import DeletionMode, EntryType
from src.timesheet_approval.timesheet_approval.core.exceptions import ValidationError
from src.timesheet_approval.timesheet_approval.entries.deletion.factory import DeletionStrategyFactory
from src.timesheet_approval.timesheet_approval.entries.deletion.hard_strategy import HardDeleteStrategy
from src.timesheet_approval.timesheet_approval.entries.deletion.soft_strategy import SoftDeleteStrategy
from src.timesheet_approval.timesheet_approval.entries.model import TimeEntry

OWNER = "b0000000-0000-4000-8000-000000000001"
OFFICE = "b0000000-0000-4000-8000-000000000002"


def _entry(*, submitted: bool) -> TimeEntry:
    return TimeEntry(
        entry_id="c0000000-0000-4000-8000-000000000001",
        user_id=OWNER,
        work_date=date(2025, 1, 1),
        entry_type=EntryType.WORK,
        hours=8.0,
        submitted=submitted,
    )


def test_owner_draft_is_hard_deleted():
    strategy = DeletionStrategyFactory().for_entry(entry=_entry(submitted=False), actor_id=OWNER)
    assert isinstance(strategy, HardDeleteStrategy)


def test_submitted_entry_of_owner_is_soft_deleted():
    strategy = DeletionStrategyFactory().for_entry(entry=_entry(submitted=True), actor_id=OWNER)
    assert isinstance(strategy, SoftDeleteStrategy)


def test_draft_deleted_by_someone_else_is_soft_deleted():
    strategy = DeletionStrategyFactory().for_entry(entry=_entry(submitted=False), actor_id=OFFICE)
    assert isinstance(strategy, SoftDeleteStrategy)


def test_soft_delete_requires_reason():
    with pytest.raises(ValidationError):
        SoftDeleteStrategy().decide(entry=_entry(submitted=True), actor_id=OFFICE, reason="", now=datetime(2025, 1, 2))


def test_soft_delete_decision_fields():
    now = datetime(2025, 1, 2, 8, 0)
    decision = SoftDeleteStrategy().decide(entry=_entry(submitted=True), actor_id=OFFICE, reason=" doppelt ", now=now)

    assert decision.mode == DeletionMode.SOFT
    assert decision.fields == {
        "is_deleted": True,
        "deleted_at": now,
        "deleted_by": OFFICE,
        "deletion_reason": "doppelt",
        "deletion_confirmed_by_user": False,
    }
