"""veritas.db – in-memory scan history, fake-account and preference stores."""
from .accounts import FakeAccount, FakeAccountStore
from .database import MAX_HISTORY, PersistenceError, RecordNotFound, ScanRecord, ScanStore
from .preferences import PreferenceStore, Preferences

__all__ = [
    "FakeAccount",
    "FakeAccountStore",
    "MAX_HISTORY",
    "PersistenceError",
    "RecordNotFound",
    "ScanRecord",
    "ScanStore",
    "PreferenceStore",
    "Preferences",
]
