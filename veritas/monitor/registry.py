"""
veritas.monitor.registry – one ScanController per signed-in user.

A user's preferences are read exactly once, when their controller is
created, and passed down; toggling monitoring afterwards goes through
set_monitoring() so the preference store and controller stay in step.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from veritas.ai.gateway import ContentAnalyzer
from veritas.db.database import ScanStore
from veritas.db.preferences import PreferenceStore

from .controller import ScanController
from .status import DisplayItem

logger = logging.getLogger(__name__)


class ScannerRegistry:
    """Creates, hands out and tears down per-user scan controllers."""

    def __init__(
        self,
        items: Sequence[DisplayItem],
        analyzer: ContentAnalyzer,
        store: ScanStore,
        preferences: PreferenceStore,
        *,
        default_platform: str = "Demo",
    ) -> None:
        self.items = list(items)
        self.analyzer = analyzer
        self.store = store
        self.preferences = preferences
        self.default_platform = default_platform
        self._controllers: dict[str, ScanController] = {}
        self._lock = asyncio.Lock()

    async def get(self, user_id: str) -> ScanController:
        """Return the user's controller, starting a session if needed."""
        async with self._lock:
            controller = self._controllers.get(user_id)
            if controller is None:
                prefs = await self.preferences.load(user_id)
                controller = ScanController(
                    user_id,
                    self.items,
                    self.analyzer,
                    self.store,
                    monitoring=prefs.monitoring_active,
                    threshold=prefs.dwell_seconds,
                    default_platform=self.default_platform,
                )
                self._controllers[user_id] = controller
                logger.info(
                    "Scanner session started for %s (monitoring=%s, dwell=%.1fs)",
                    user_id, prefs.monitoring_active, prefs.dwell_seconds,
                )
            return controller

    async def set_monitoring(self, user_id: str, enabled: bool) -> ScanController:
        controller = await self.get(user_id)
        controller.set_monitoring(enabled)
        await self.preferences.update(user_id, monitoring_active=enabled)
        return controller

    def active(self, user_id: str) -> bool:
        return user_id in self._controllers

    async def stop(self, user_id: str) -> None:
        async with self._lock:
            controller = self._controllers.pop(user_id, None)
        if controller is not None:
            await controller.close()
            logger.info("Scanner session stopped for %s", user_id)

    async def close_all(self) -> None:
        async with self._lock:
            controllers = list(self._controllers.values())
            self._controllers.clear()
        for controller in controllers:
            await controller.close()
