"""Example: drive the workflow through the service layer (no Flask).

Controllers are a thin layer; the rules live in the engine and the service.
"""

import importlib
import logging

from config import get_settings_module

from src.timesheet_approval.timesheet_approval.common.datetime_utils import now_local
from src.timesheet_approval.timesheet_approval.container import build_container
from src.timesheet_approval.timesheet_approval.core.constants import ENTRIES_TABLE
from src.timesheet_approval.timesheet_approval.core.enums import EntryType
from src.timesheet_approval.timesheet_approval.database.bootstrap import DEMO_USERS
from src.timesheet_approval.timesheet_approval.entries.model import EntryPatch, NewTimeEntry


def main():
    logging.basicConfig(level=logging.INFO)
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG)
    service = container.entry_service

    admin_id, office_id, installer_id, _ = (row[0] for row in DEMO_USERS)

    container.notifier.subscribe(lambda event: print("changed:", event), table=ENTRIES_TABLE)

    entry = service.create_entry(
        NewTimeEntry(work_date=now_local().date(), entry_type=EntryType.COMPANY, hours=8),
        actor_id=installer_id,
    )
    print("created:", entry.entry_id, "submitted=", entry.submitted, "confirmed_at=", entry.confirmed_at)

    entry = service.update_entry(entry.entry_id, EntryPatch(hours=7.5), actor_id=office_id, reason="Pause vergessen")
    print("office edit acknowledged by owner:", entry.change_confirmed_by_user)

    for row in service.get_history(entry.entry_id):
        print(row.changed_at, row.changer_name, row.status.value, row.reason)

    print(service.delete_entry(entry.entry_id, actor_id=admin_id, reason="Doppelt erfasst"))


if __name__ == "__main__":
    main()
