"""
veritas – dwell-triggered social media content verification service.

Entry point:  veritas.main:app  (FastAPI ASGI application)

Sub-packages:
    ai          Analysis gateway client and prompts
    db          In-memory scan history, fake-account and preference stores
    monitor     Dwell detection, status display, scan orchestration
    notify      Realtime alert feed
"""

__version__ = "1.0.0"
