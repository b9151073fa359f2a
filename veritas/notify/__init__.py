"""veritas.notify – realtime alert notifications."""
from .realtime import ScanNotifier, Subscription, alert_payload, alert_stream, format_sse

__all__ = ["ScanNotifier", "Subscription", "alert_payload", "alert_stream", "format_sse"]
