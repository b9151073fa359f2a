"""Shared test fixtures for the Veritas test suite."""

import json
import os

import httpx
import pytest

# Ensure test environment variables are set before any settings import
os.environ.setdefault("VERITAS_GATEWAY_API_KEY", "test-key")
os.environ.setdefault("VERITAS_GATEWAY_URL", "https://gateway.test/v1/chat/completions")

from veritas.ai.gateway import ContentAnalyzer  # noqa: E402
from veritas.monitor.status import DisplayItem  # noqa: E402

TICK = 0.1


class _Timer:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualClock:
    """
    Deterministic stand-in for ``time.monotonic`` + ``loop.call_later``.

    Timers only run from advance() / run_due(), in deadline order.
    """

    def __init__(self):
        self.now = 0.0
        self._timers = []

    def __call__(self):
        return self.now

    def call_later(self, delay, callback):
        timer = _Timer(round(self.now + delay, 9), callback)
        self._timers.append(timer)
        return timer

    @property
    def pending(self):
        return sum(1 for t in self._timers if not t.cancelled)

    def run_due(self):
        while True:
            due = [t for t in self._timers if not t.cancelled and t.when <= self.now]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self._timers.remove(timer)
            timer.callback()
        self._timers = [t for t in self._timers if not t.cancelled]

    def advance(self, seconds):
        self.now = round(self.now + seconds, 9)
        self.run_due()

    def tick(self, count=1, step=TICK):
        for _ in range(count):
            self.advance(step)


@pytest.fixture
def clock():
    return ManualClock()


def gateway_reply(result: dict | str, fenced: bool = False) -> dict:
    """A chat-completions body whose message content is *result*."""
    content = result if isinstance(result, str) else json.dumps(result)
    if fenced:
        content = f"```json\n{content}\n```"
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@pytest.fixture
def verified_result():
    return {
        "verificationStatus": "verified",
        "alertType": None,
        "alertMessage": None,
        "confidenceScore": 92,
        "deepfakeDetected": False,
        "credentialVerified": True,
        "analysisDetails": {
            "credentialCheck": "Consistent professional history",
            "contentAnalysis": "No synthetic media indicators",
            "riskFactors": [],
        },
    }


@pytest.fixture
def alert_result():
    return {
        "verificationStatus": "alert",
        "alertType": "misinformation",
        "alertMessage": "Scam Warning: unrealistic financial claims",
        "confidenceScore": 81,
        "deepfakeDetected": False,
        "credentialVerified": False,
        "analysisDetails": {
            "credentialCheck": "Registry Not Found",
            "contentAnalysis": "Promises guaranteed returns",
            "riskFactors": ["unrealistic claims"],
        },
    }


def make_analyzer(handler, api_key="test-key"):
    """ContentAnalyzer whose HTTP traffic goes to *handler* instead of the network."""
    return ContentAnalyzer(
        url="https://gateway.test/v1/chat/completions",
        api_key=api_key,
        model="test-model",
        timeout_seconds=5.0,
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def items():
    return [
        DisplayItem(
            id="1",
            username="lifestyle_vibes",
            bio="Travel • Fashion • Daily inspiration",
            content_type="Instagram Post",
        ),
        DisplayItem(
            id="2",
            username="crypto_guru_official",
            bio="Make $10k/day with my secret method",
            content_type="YouTube Video",
            platform="YouTube",
        ),
    ]
