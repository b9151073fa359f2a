"""
veritas.db.preferences – per-user scanner preferences.

Preferences are read once when a user's scanner session starts and handed to
the scan controller; the monitoring toggle is written back here whenever the
user flips it.
"""
from __future__ import annotations

import asyncio

from pydantic import BaseModel, Field


class Preferences(BaseModel):
    """
    Scanner settings for one user.

    ``alert_sound`` and ``auto_scan`` are client-side hints: they are stored
    and served for the dashboard but nothing in the service reads them.
    """
    monitoring_active: bool = False
    notifications_enabled: bool = True
    alert_sound: bool = True
    auto_scan: bool = True
    dwell_seconds: float = Field(default=3.0, ge=1, le=10)


class PreferenceStore:
    """
    Asynchronous per-user preference store.

    Unknown users get *defaults* until they save something.
    """

    def __init__(self, defaults: Preferences | None = None) -> None:
        self.defaults = defaults or Preferences()
        self._prefs: dict[str, Preferences] = {}
        self._lock = asyncio.Lock()

    async def load(self, user_id: str) -> Preferences:
        async with self._lock:
            return self._prefs.get(user_id, self.defaults).model_copy()

    async def save(self, user_id: str, prefs: Preferences) -> Preferences:
        async with self._lock:
            self._prefs[user_id] = prefs.model_copy()
        return prefs

    async def update(self, user_id: str, **changes) -> Preferences:
        """Apply a partial update and return the validated result."""
        async with self._lock:
            current = self._prefs.get(user_id, self.defaults)
            updated = Preferences.model_validate({**current.model_dump(), **changes})
            self._prefs[user_id] = updated
            return updated.model_copy()
