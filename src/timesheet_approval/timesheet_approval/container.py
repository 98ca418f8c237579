from __future__ import annotations

from dataclasses import dataclass

from .core.constants import DEFAULT_HISTORY_LIMIT, OWNER_EDIT_REASON
from .database.connection import DBConfig, DatabaseConnection
from .entries.authorization import RoleReviewerAuthorization
from .entries.deletion.factory import DeletionStrategyFactory
from .entries.mysql_entry_repository import MySQLTimeEntryRepository
from .entries.service import TimeEntryService
from .entries.workflow import WorkflowEngine
from .history.mysql_history_repository import MySQLEntryHistoryRepository
from .history.recorder import HistoryRecorder
from .locks.mysql_locked_day_repository import MySQLLockedDayRepository
from .notifications.notifier import ChangeNotifier
from .users.mysql_settings_repository import MySQLUserSettingsRepository


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    entries_repo: MySQLTimeEntryRepository
    history_repo: MySQLEntryHistoryRepository
    settings_repo: MySQLUserSettingsRepository
    locks_repo: MySQLLockedDayRepository

    notifier: ChangeNotifier
    history_recorder: HistoryRecorder
    entry_service: TimeEntryService


def build_container(
    *,
    db_config: dict,
    owner_edit_reason: str = OWNER_EDIT_REASON,
    history_limit: int = DEFAULT_HISTORY_LIMIT,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_mapping(db_config))

    entries_repo = MySQLTimeEntryRepository(conn)
    history_repo = MySQLEntryHistoryRepository(conn)
    settings_repo = MySQLUserSettingsRepository(conn)
    locks_repo = MySQLLockedDayRepository(conn)

    notifier = ChangeNotifier()
    history_recorder = HistoryRecorder(history_repo, settings_repo, limit=history_limit)
    entry_service = TimeEntryService(
        entries_repo,
        history_recorder,
        settings_repo,
        locks_repo,
        notifier,
        engine=WorkflowEngine(
            deletion_factory=DeletionStrategyFactory(),
            owner_edit_reason=owner_edit_reason,
        ),
        authorization=RoleReviewerAuthorization(),
        rejection_channel=entries_repo,
    )

    return Container(
        conn=conn,
        entries_repo=entries_repo,
        history_repo=history_repo,
        settings_repo=settings_repo,
        locks_repo=locks_repo,
        notifier=notifier,
        history_recorder=history_recorder,
        entry_service=entry_service,
    )
