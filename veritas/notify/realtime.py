"""
veritas.notify.realtime – in-process change feed for new scan records.

ScanNotifier is registered as an insert listener on the ScanStore.  Each
subscriber gets its own bounded queue filtered by owner; alert_stream() narrows
that to ``alert`` records, which is all the dashboard reacts to.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncIterator

from veritas.db.database import ScanRecord
from veritas.monitor.display import ALERT_FALLBACK_MESSAGE

logger = logging.getLogger(__name__)


class Subscription:
    """One consumer's view of the feed.  Close it when done."""

    def __init__(self, notifier: "ScanNotifier", owner_id: str | None, maxsize: int) -> None:
        self.owner_id = owner_id
        self._notifier = notifier
        self._queue: asyncio.Queue[ScanRecord | None] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def matches(self, record: ScanRecord) -> bool:
        return self.owner_id is None or record.user_id == self.owner_id

    def offer(self, record: ScanRecord) -> None:
        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull:
            logger.warning("Dropping scan %s for slow subscriber %s", record.id, self.owner_id)

    async def get(self) -> ScanRecord | None:
        """Next record, or None once the subscription is closed."""
        if self.closed and self._queue.empty():
            return None
        return await self._queue.get()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._notifier._unsubscribe(self)
        # wake a reader blocked in get()
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class ScanNotifier:
    """Fan-out of inserted ScanRecords to subscribers filtered by owner."""

    def __init__(self, queue_size: int = 100) -> None:
        self.queue_size = queue_size
        self._subscriptions: set[Subscription] = set()

    def subscribe(self, owner_id: str | None) -> Subscription:
        subscription = Subscription(self, owner_id, self.queue_size)
        self._subscriptions.add(subscription)
        logger.info("Realtime subscription opened for %s", owner_id or "all owners")
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)
        logger.info("Realtime subscription closed for %s", subscription.owner_id or "all owners")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def close_owner(self, owner_id: str) -> int:
        """Close every subscription held by *owner_id*; returns how many."""
        closing = [s for s in self._subscriptions if s.owner_id == owner_id]
        for subscription in closing:
            subscription.close()
        return len(closing)

    def publish(self, record: ScanRecord) -> None:
        for subscription in list(self._subscriptions):
            if subscription.matches(record):
                subscription.offer(record)


async def alert_stream(subscription: Subscription) -> AsyncIterator[ScanRecord]:
    """Yield only records whose status is ``alert``; ends when the subscription closes."""
    while True:
        record = await subscription.get()
        if record is None:
            return
        if record.verification_status == "alert":
            yield record


def alert_payload(record: ScanRecord) -> dict:
    """Notification body for one alert record."""
    handle = record.username_scanned or "Unknown"
    return {
        "id":          record.id,
        "title":       f"Alert: @{handle}",
        "description": record.alert_message or ALERT_FALLBACK_MESSAGE,
        "scanned_at":  record.scanned_at.isoformat(),
    }


def format_sse(event: str, payload: dict) -> str:
    """Render one Server-Sent Event frame."""
    return f"event: {event}\ndata: {json.dumps(payload)}\n\n"
