"""
veritas.monitor.dwell – hover/touch dwell timing for a single content card.

DwellDetector does not poll.  Elapsed presence time is read from a monotonic
clock whenever one of its three inputs changes (presence, monitoring, status),
and a single deadline timer is kept armed on the event loop while the card is
eligible.  When the deadline passes the completion callback runs once; the
detector is then spent until the card's status returns to ``pending``.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Protocol

from .status import VerificationStatus

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD_SECONDS = 3.0


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


def loop_call_later(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class DwellDetector:
    """
    Accumulates presence time while ``present and monitoring and status == pending``.

    - Losing presence resets accumulated time to zero.
    - Disabling monitoring or leaving ``pending`` only pauses accumulation.
    - ``on_complete`` fires at most once per arming.  Re-arming happens when
      the status moves back to ``pending`` from any other value.
    - After ``close()`` no callback is ever delivered.

    *clock* must be monotonic and share a time base with *call_later*; the
    defaults are ``time.monotonic`` and the running loop's ``call_later``.
    """

    def __init__(
        self,
        on_complete: Callable[[], Any],
        *,
        threshold: float = DEFAULT_THRESHOLD_SECONDS,
        monitoring: bool = False,
        status: VerificationStatus = VerificationStatus.PENDING,
        clock: Callable[[], float] = time.monotonic,
        call_later: Scheduler = loop_call_later,
    ) -> None:
        if threshold <= 0:
            raise ValueError("threshold must be positive")
        self._on_complete = on_complete
        self._threshold = float(threshold)
        self._clock = clock
        self._call_later = call_later

        self._present = False
        self._monitoring = monitoring
        self._status = status
        self._accumulated = 0.0
        self._started_at: float | None = None
        self._timer: TimerHandle | None = None
        self._fired = False
        self._closed = False

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def set_present(self, present: bool) -> None:
        if self._closed or present == self._present:
            return
        now = self._clock()
        self._fold(now)
        self._present = present
        if not present:
            self._accumulated = 0.0
        self._sync(now)

    def set_monitoring(self, monitoring: bool) -> None:
        if self._closed or monitoring == self._monitoring:
            return
        now = self._clock()
        self._fold(now)
        self._monitoring = monitoring
        self._sync(now)

    def set_status(self, status: VerificationStatus) -> None:
        if self._closed or status == self._status:
            return
        now = self._clock()
        self._fold(now)
        if status is VerificationStatus.PENDING:
            # re-armed: a fresh dwell is required
            self._fired = False
            self._accumulated = 0.0
        self._status = status
        self._sync(now)

    def rearm(self) -> None:
        """
        Back to ``pending`` with a fresh dwell required.

        Unlike ``set_status(PENDING)`` this also clears a completion that
        fired while the status was still ``pending``.
        """
        if self._closed:
            return
        now = self._clock()
        self._fold(now)
        self._fired = False
        self._accumulated = 0.0
        self._status = VerificationStatus.PENDING
        self._sync(now)

    def close(self) -> None:
        """Cancel any pending deadline; the detector is inert afterwards."""
        self._closed = True
        self._started_at = None
        self._cancel_timer()

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def eligible(self) -> bool:
        return (
            not self._closed
            and not self._fired
            and self._present
            and self._monitoring
            and self._status is VerificationStatus.PENDING
        )

    @property
    def completed(self) -> bool:
        return self._fired

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def elapsed(self) -> float:
        """Accumulated dwell time in seconds, capped at the threshold."""
        total = self._accumulated
        if self._started_at is not None:
            total += self._clock() - self._started_at
        return min(total, self._threshold)

    @property
    def progress(self) -> float:
        return self.elapsed / self._threshold

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fold(self, now: float) -> None:
        if self._started_at is not None:
            self._accumulated += now - self._started_at
            self._started_at = None
        self._cancel_timer()

    def _sync(self, now: float) -> None:
        if not self.eligible:
            return
        self._started_at = now
        self._arm(self._threshold - self._accumulated)

    def _arm(self, delay: float) -> None:
        self._cancel_timer()
        self._timer = self._call_later(max(0.0, delay), self._on_deadline)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_deadline(self) -> None:
        self._timer = None
        if not self.eligible or self._started_at is None:
            return

        now = self._clock()
        elapsed = self._accumulated + (now - self._started_at)
        if elapsed < self._threshold:
            # timer fired early relative to our clock
            self._arm(self._threshold - elapsed)
            return

        self._fired = True
        self._accumulated = self._threshold
        self._started_at = None
        logger.debug("Dwell threshold %.2fs reached", self._threshold)
        self._on_complete()
