"""
veritas.monitor.controller – per-user scan orchestration.

ScanController owns the status of every card shown to one user.  It wires
each card's DwellDetector to a single analysis request and is the only writer
of card status.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from pydantic import BaseModel

from veritas.ai.gateway import AnalysisError, AnalysisRequest, ContentAnalyzer
from veritas.db.database import PersistenceError, ScanStore

from .display import StatusView, profession_icon, render_status
from .dwell import DEFAULT_THRESHOLD_SECONDS, DwellDetector, Scheduler, loop_call_later
from .status import DisplayItem, ItemStatus, VerificationStatus

logger = logging.getLogger(__name__)


class CardSnapshot(BaseModel):
    item: DisplayItem
    icon: str
    status: VerificationStatus
    alert_message: str | None
    progress: float
    view: StatusView


@dataclass
class _Card:
    item: DisplayItem
    state: ItemStatus
    detector: DwellDetector
    task: asyncio.Task | None = field(default=None)


class ScanController:
    """
    Orchestrates dwell → scanning → result for one user's cards.

    Usage::

        controller = ScanController("user-1", items, analyzer, store, monitoring=True)
        controller.set_presence("2", True)      # pointer over card 2
        ...                                     # 3 s later the scan starts
        await controller.close()
    """

    def __init__(
        self,
        owner_id: str,
        items: Iterable[DisplayItem],
        analyzer: ContentAnalyzer,
        store: ScanStore,
        *,
        monitoring: bool = False,
        threshold: float = DEFAULT_THRESHOLD_SECONDS,
        default_platform: str = "Demo",
        clock: Callable[[], float] | None = None,
        call_later: Scheduler = loop_call_later,
    ) -> None:
        self.owner_id = owner_id
        self.analyzer = analyzer
        self.store = store
        self.default_platform = default_platform
        self._monitoring = monitoring
        self._closed = False

        detector_kwargs: dict = {"threshold": threshold, "call_later": call_later}
        if clock is not None:
            detector_kwargs["clock"] = clock

        self._cards: dict[str, _Card] = {}
        for item in items:
            detector = DwellDetector(
                lambda item_id=item.id: self._on_dwell_complete(item_id),
                monitoring=monitoring,
                **detector_kwargs,
            )
            self._cards[item.id] = _Card(item=item, state=ItemStatus(), detector=detector)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    @property
    def monitoring(self) -> bool:
        return self._monitoring

    def set_presence(self, item_id: str, present: bool) -> None:
        """Pointer/touch entered (True) or left (False) a card."""
        self._card(item_id).detector.set_present(present)

    def set_monitoring(self, enabled: bool) -> None:
        """Flip the scanner toggle.  Turning it off clears every result."""
        if enabled == self._monitoring:
            return
        self._monitoring = enabled
        for card in self._cards.values():
            card.detector.set_monitoring(enabled)
        if not enabled:
            self.reset_all()
        logger.info("Monitoring %s for %s", "enabled" if enabled else "disabled", self.owner_id)

    def reset(self, item_id: str) -> None:
        card = self._card(item_id)
        self._cancel_scan(card)
        card.state.reset()
        card.detector.rearm()

    def reset_all(self) -> None:
        for item_id in self._cards:
            self.reset(item_id)

    def remove_item(self, item_id: str) -> None:
        card = self._cards.pop(item_id, None)
        if card is None:
            raise KeyError(item_id)
        card.detector.close()
        self._cancel_scan(card)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def status(self, item_id: str) -> VerificationStatus:
        return self._card(item_id).state.status

    def snapshot(self) -> list[CardSnapshot]:
        snapshots = []
        for card in self._cards.values():
            progress = card.detector.progress
            snapshots.append(
                CardSnapshot(
                    item=card.item,
                    icon=profession_icon(card.item.profession),
                    status=card.state.status,
                    alert_message=card.state.alert_message,
                    progress=progress,
                    view=render_status(
                        card.state.status,
                        card.state.alert_message,
                        progress=progress,
                        monitoring=self._monitoring,
                    ),
                )
            )
        return snapshots

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def _on_dwell_complete(self, item_id: str) -> None:
        card = self._cards.get(item_id)
        if card is None or self._closed:
            return
        if card.state.status is not VerificationStatus.PENDING or (
            card.task is not None and not card.task.done()
        ):
            logger.error(
                "Dwell completion for %s while %s; ignoring", item_id, card.state.status.value
            )
            return
        card.task = asyncio.get_running_loop().create_task(
            self.scan(item_id), name=f"scan-{self.owner_id}-{item_id}"
        )

    async def scan(self, item_id: str) -> VerificationStatus:
        """
        Run one analysis for a pending card and apply its outcome.

        Gateway failures of any kind leave the card ``unverified`` and store
        nothing.  A store failure keeps the received status but is logged.

        Raises:
            KeyError           Unknown card.
            InvalidTransition  The card is not pending.
        """
        card = self._card(item_id)
        card.state.begin_scan()
        card.detector.set_status(VerificationStatus.SCANNING)

        item = card.item
        request = AnalysisRequest(
            username=item.username,
            bio=item.bio,
            content_type=item.content_type,
            platform=item.platform or self.default_platform,
            image_url=item.image_url,
        )

        try:
            result = await self.analyzer.analyze(request)
        except AnalysisError as exc:
            logger.warning("Analysis failed for @%s: %s", item.username, exc)
            self._finish(card, VerificationStatus.UNVERIFIED)
            return VerificationStatus.UNVERIFIED

        status = VerificationStatus(result.verification_status)
        if not self._finish(card, status, result.alert_message):
            return card.state.status

        try:
            await self.store.create(
                user_id=self.owner_id,
                username_scanned=item.username,
                content_type=item.content_type,
                platform=request.platform,
                verification_status=result.verification_status,
                alert_type=result.alert_type,
                alert_message=result.alert_message,
                confidence_score=result.confidence_score,
                deepfake_detected=result.deepfake_detected,
                credential_verified=result.credential_verified,
            )
        except PersistenceError as exc:
            logger.warning("Failed to save scan of @%s: %s", item.username, exc)
        return status

    def _finish(
        self, card: _Card, status: VerificationStatus, alert_message: str | None = None
    ) -> bool:
        if card.state.status is not VerificationStatus.SCANNING:
            # reset while the request was in flight
            return False
        card.state.finish(status, alert_message)
        card.detector.set_status(status)
        return True

    def _cancel_scan(self, card: _Card) -> None:
        if card.task is not None and not card.task.done():
            card.task.cancel()
        card.task = None

    async def wait_idle(self) -> None:
        """Wait for every in-flight scan to finish."""
        tasks = [c.task for c in self._cards.values() if c.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        """Stop every detector and cancel in-flight scans."""
        self._closed = True
        tasks = []
        for card in self._cards.values():
            card.detector.close()
            if card.task is not None and not card.task.done():
                card.task.cancel()
                tasks.append(card.task)
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _card(self, item_id: str) -> _Card:
        try:
            return self._cards[item_id]
        except KeyError:
            raise KeyError(item_id) from None


