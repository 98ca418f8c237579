"""Constants and defaults.

Note: Keep constants here to avoid magic values spread across code.
"""

from .enums import EntryType, Role

# Categories that skip manual review when the owner disabled mandatory confirmation.
AUTO_CONFIRM_TYPES = frozenset(
    {
        EntryType.COMPANY,
        EntryType.OFFICE,
        EntryType.WAREHOUSE,
        EntryType.CAR,
    }
)

SURCHARGE_TYPES = frozenset({EntryType.EMERGENCY_SERVICE})

REVIEWER_ROLES = frozenset({Role.ADMIN, Role.OFFICE})

DEFAULT_ROLE = Role.INSTALLER
DEFAULT_DISPLAY_NAME = "Benutzer"
DEFAULT_REQUIRE_CONFIRMATION = True

OWNER_EDIT_REASON = "Eigenbearbeitung"
UNKNOWN_CHANGER_NAME = "Unbekannt"
SYSTEM_CHANGER_NAME = "System"

DEFAULT_HISTORY_LIMIT = 100

ENTRIES_TABLE = "time_entries"
HISTORY_TABLE = "entry_change_history"
