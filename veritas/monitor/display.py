"""
veritas.monitor.display – status-to-view mapping for content cards.

render_status() is a pure function: it never changes the card, it only
describes how the card should look for the status its owner supplied.
"""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from .status import VerificationStatus

ALERT_FALLBACK_MESSAGE = "Suspicious content detected"
VERIFIED_MESSAGE = "Credentials verified via official registry"
UNVERIFIED_MESSAGE = "Verification could not be completed"

_PROFESSION_ICONS: dict[str, str] = {
    "doctor":     "stethoscope",
    "lawyer":     "scale",
    "politician": "landmark",
    "influencer": "trending-up",
    "unknown":    "user",
}


class Badge(BaseModel):
    label: str
    icon: str
    tone: Literal["success", "destructive", "primary", "muted"]
    pulsing: bool = False


class Panel(BaseModel):
    tone: Literal["success", "destructive", "muted"]
    icon: str
    message: str


class StatusView(BaseModel):
    """Everything a client needs to draw one card in its current state."""
    status: VerificationStatus
    border: Literal["default", "success", "destructive", "primary"]
    badge: Badge | None
    panel: Panel | None
    scan_overlay: bool
    progress: float | None


def profession_icon(profession: str | None) -> str:
    """Icon name for a profession tag; unknown tags get the generic user icon."""
    return _PROFESSION_ICONS.get((profession or "unknown").lower(), "user")


def render_status(
    status: VerificationStatus,
    alert_message: str | None = None,
    *,
    progress: float = 0.0,
    monitoring: bool = False,
) -> StatusView:
    """
    Map a card status to its view.

    Args:
        status         Current verification status of the card.
        alert_message  Text for the alert panel; blank or missing text under
                       ``alert`` falls back to ALERT_FALLBACK_MESSAGE.
        progress       Dwell progress in [0, 1]; only shown while pending.
        monitoring     Whether the scanner toggle is on.
    """
    if status is VerificationStatus.VERIFIED:
        return StatusView(
            status=status,
            border="success",
            badge=Badge(label="Verified", icon="check-circle", tone="success"),
            panel=Panel(tone="success", icon="check-circle", message=VERIFIED_MESSAGE),
            scan_overlay=False,
            progress=None,
        )

    if status is VerificationStatus.ALERT:
        message = (alert_message or "").strip() or ALERT_FALLBACK_MESSAGE
        return StatusView(
            status=status,
            border="destructive",
            badge=Badge(label="Alert", icon="alert-triangle", tone="destructive", pulsing=True),
            panel=Panel(tone="destructive", icon="alert-triangle", message=message),
            scan_overlay=False,
            progress=None,
        )

    if status is VerificationStatus.SCANNING:
        return StatusView(
            status=status,
            border="primary",
            badge=Badge(label="Scanning", icon="loader", tone="primary"),
            panel=None,
            scan_overlay=True,
            progress=None,
        )

    if status is VerificationStatus.UNVERIFIED:
        return StatusView(
            status=status,
            border="default",
            badge=Badge(label="Unverified", icon="help-circle", tone="muted"),
            panel=Panel(tone="muted", icon="help-circle", message=UNVERIFIED_MESSAGE),
            scan_overlay=False,
            progress=None,
        )

    # pending
    bounded = max(0.0, min(1.0, progress))
    return StatusView(
        status=status,
        border="default",
        badge=None,
        panel=None,
        scan_overlay=False,
        progress=bounded if monitoring and bounded > 0 else None,
    )
