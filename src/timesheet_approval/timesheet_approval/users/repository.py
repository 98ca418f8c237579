from __future__ import annotations

from typing import Iterable, Mapping, Optional, Protocol

from .model import UserSettings


class UserSettingsRepository(Protocol):
    """Owner settings provider.

    Note (DIP): the workflow service depends on this interface, not on a concrete DB.
    """

    def get_settings(self, user_id: str) -> Optional[UserSettings]:
        raise NotImplementedError

    def get_display_names(self, user_ids: Iterable[str]) -> Mapping[str, str]:
        raise NotImplementedError
