"""veritas.monitor – content cards: dwell timing, status display and scan orchestration."""
from .catalogue import load_catalogue
from .controller import CardSnapshot, ScanController
from .display import StatusView, profession_icon, render_status
from .dwell import DwellDetector
from .registry import ScannerRegistry
from .status import (
    TERMINAL_STATUSES,
    DisplayItem,
    InvalidTransition,
    ItemStatus,
    VerificationStatus,
)

__all__ = [
    "CardSnapshot",
    "DisplayItem",
    "DwellDetector",
    "InvalidTransition",
    "ItemStatus",
    "ScanController",
    "ScannerRegistry",
    "StatusView",
    "TERMINAL_STATUSES",
    "VerificationStatus",
    "load_catalogue",
    "profession_icon",
    "render_status",
]
