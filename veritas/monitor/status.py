"""
veritas.monitor.status – verification status values and per-item state machine.

Each content card owns one ItemStatus.  The only legal paths are::

    pending ──begin_scan──▶ scanning ──finish──▶ verified | alert | unverified
       ▲                                                   │
       └──────────────────────── reset ◀───────────────────┘

Keeping status in a single object (instead of separate "scanning" / "result"
flags) is what guarantees a card cannot be scanned twice without a reset.
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class VerificationStatus(str, Enum):
    PENDING = "pending"
    SCANNING = "scanning"
    VERIFIED = "verified"
    ALERT = "alert"
    UNVERIFIED = "unverified"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {VerificationStatus.VERIFIED, VerificationStatus.ALERT, VerificationStatus.UNVERIFIED}
)


class InvalidTransition(RuntimeError):
    """Raised when a status change would break the pending → scanning → terminal order."""

    def __init__(self, current: VerificationStatus, target: VerificationStatus) -> None:
        super().__init__(f"cannot move from {current.value} to {target.value}")
        self.current = current
        self.target = target


class DisplayItem(BaseModel):
    """A content card as loaded from the catalogue."""
    id: str
    username: str
    bio: str = ""
    content_type: str = Field(alias="contentType")
    profession: str = "unknown"
    image_url: str | None = Field(default=None, alias="imageUrl")
    platform: str | None = None

    model_config = {"populate_by_name": True}


class ItemStatus:
    """
    Explicit status state machine for one DisplayItem.

    Usage::

        state = ItemStatus()
        state.begin_scan()
        state.finish(VerificationStatus.VERIFIED)
        state.reset()
    """

    def __init__(self) -> None:
        self._status = VerificationStatus.PENDING
        self.alert_message: str | None = None

    @property
    def status(self) -> VerificationStatus:
        return self._status

    def begin_scan(self) -> None:
        if self._status is not VerificationStatus.PENDING:
            raise InvalidTransition(self._status, VerificationStatus.SCANNING)
        self._status = VerificationStatus.SCANNING
        self.alert_message = None

    def finish(
        self, result: VerificationStatus, alert_message: str | None = None
    ) -> None:
        if self._status is not VerificationStatus.SCANNING or not result.is_terminal:
            raise InvalidTransition(self._status, result)
        self._status = result
        self.alert_message = alert_message if result is VerificationStatus.ALERT else None

    def reset(self) -> None:
        """Return to pending from any state."""
        self._status = VerificationStatus.PENDING
        self.alert_message = None

    def __repr__(self) -> str:
        return f"ItemStatus({self._status.value})"
