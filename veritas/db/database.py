"""
veritas.db – in-memory scan history store.

ScanStore keeps the append-only ScanRecord log.  Records are only ever
created or deleted, never edited.  Insert listeners (the realtime notifier)
are called after each successful create.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Literal

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

MAX_HISTORY = 10_000  # cap to prevent unbounded growth

TerminalStatus = Literal["verified", "alert", "unverified"]


class PersistenceError(Exception):
    """A store write or delete could not be completed."""


class RecordNotFound(PersistenceError):
    pass


class ScanRecord(BaseModel):
    """
    Persisted outcome of one completed analysis.

    Only terminal statuses are accepted; ``pending`` and ``scanning`` never
    reach the store.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    username_scanned: str | None = None
    content_type: str
    platform: str | None = None
    verification_status: TerminalStatus
    alert_type: str | None = None
    alert_message: str | None = None
    confidence_score: float | None = Field(default=None, ge=0, le=100)
    deepfake_detected: bool | None = None
    credential_verified: bool | None = None
    scanned_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


InsertListener = Callable[[ScanRecord], None]


class ScanStore:
    """
    Async, lock-guarded ScanRecord store.

    Usage::

        store = ScanStore()
        record = await store.create(user_id="u1", content_type="Instagram Post",
                                    verification_status="verified")
        records = await store.list(owner_id="u1")
    """

    def __init__(self, max_records: int = MAX_HISTORY) -> None:
        self.max_records = max_records
        self._records: list[ScanRecord] = []
        self._lock = asyncio.Lock()
        self._listeners: list[InsertListener] = []

    def add_listener(self, listener: InsertListener) -> None:
        self._listeners.append(listener)

    async def create(self, **fields) -> ScanRecord:
        """
        Validate and append a record.  The oldest record is dropped once the
        store exceeds ``max_records``.

        Raises:
            PersistenceError  The fields do not form a valid ScanRecord.
        """
        try:
            record = ScanRecord(**fields)
        except ValidationError as exc:
            raise PersistenceError(f"Invalid scan record: {exc.error_count()} error(s)") from exc

        async with self._lock:
            self._records.append(record)
            if len(self._records) > self.max_records:
                del self._records[0]

        for listener in self._listeners:
            try:
                listener(record)
            except Exception:
                logger.exception("Scan insert listener failed for record %s", record.id)
        return record

    async def list(
        self,
        owner_id: str | None = None,
        status: str | None = None,
        search: str | None = None,
        limit: int = 50,
    ) -> list[ScanRecord]:
        records, _ = await self.query(owner_id, status, search, limit)
        return records

    async def query(
        self,
        owner_id: str | None = None,
        status: str | None = None,
        search: str | None = None,
        limit: int = 50,
    ) -> tuple[list[ScanRecord], int]:
        """
        Return one page of records newest-first, plus the filtered total.

        Args:
            owner_id  Only records created by this user.
            status    ``"all"`` / None, or one terminal status.
            search    Case-insensitive match on scanned handle or content type.
            limit     Maximum records to return (clamped 1–2000).
        """
        async with self._lock:
            records = sorted(self._records, key=lambda r: r.scanned_at, reverse=True)

        if owner_id is not None:
            records = [r for r in records if r.user_id == owner_id]

        if status and status.lower() != "all":
            wanted = status.lower()
            records = [r for r in records if r.verification_status == wanted]

        if search:
            term = search.lower()
            records = [
                r for r in records
                if term in (r.username_scanned or "").lower()
                or term in r.content_type.lower()
            ]

        limit = max(1, min(limit, 2000))
        return records[:limit], len(records)

    async def delete(self, record_id: str, owner_id: str | None = None) -> None:
        """
        Remove one record.  When *owner_id* is given the record must belong to it.

        Raises:
            RecordNotFound  No such record visible to the caller.
        """
        async with self._lock:
            for index, record in enumerate(self._records):
                if record.id == record_id and (owner_id is None or record.user_id == owner_id):
                    del self._records[index]
                    return
        raise RecordNotFound(f"Scan {record_id} not found")

    async def count(self) -> int:
        async with self._lock:
            return len(self._records)

    async def counts_by_status(self) -> dict[str, int]:
        counts = {"verified": 0, "alert": 0, "unverified": 0}
        async with self._lock:
            for record in self._records:
                counts[record.verification_status] += 1
        return counts
