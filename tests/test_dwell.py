"""Tests for veritas.monitor.dwell.DwellDetector."""

import asyncio

import pytest

from veritas.monitor.dwell import DwellDetector
from veritas.monitor.status import VerificationStatus


class Counter:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


def make_detector(clock, monitoring=True, threshold=3.0):
    fired = Counter()
    detector = DwellDetector(
        fired,
        threshold=threshold,
        monitoring=monitoring,
        clock=clock,
        call_later=clock.call_later,
    )
    return detector, fired


class TestCompletion:
    def test_fires_once_at_thirtieth_tick(self, clock):
        detector, fired = make_detector(clock)
        detector.set_present(True)

        clock.tick(29)
        assert fired.calls == 0
        assert detector.progress == pytest.approx(2.9 / 3.0)

        clock.tick(1)
        assert fired.calls == 1
        assert detector.completed

        clock.tick(50)
        assert fired.calls == 1

    def test_progress_is_capped_after_completion(self, clock):
        detector, _ = make_detector(clock)
        detector.set_present(True)
        clock.tick(40)
        assert detector.progress == 1.0

    def test_no_accumulation_without_monitoring(self, clock):
        detector, fired = make_detector(clock, monitoring=False)
        detector.set_present(True)
        clock.tick(60)
        assert fired.calls == 0
        assert detector.elapsed == 0.0

    def test_no_accumulation_unless_pending(self, clock):
        detector, fired = make_detector(clock)
        detector.set_status(VerificationStatus.VERIFIED)
        detector.set_present(True)
        clock.tick(60)
        assert fired.calls == 0

    def test_rejects_non_positive_threshold(self, clock):
        with pytest.raises(ValueError):
            make_detector(clock, threshold=0)


class TestPresence:
    def test_leaving_resets_accumulated_time(self, clock):
        detector, fired = make_detector(clock)
        detector.set_present(True)
        clock.tick(20)
        detector.set_present(False)
        assert detector.elapsed == 0.0

        detector.set_present(True)
        clock.tick(20)
        assert fired.calls == 0
        clock.tick(10)
        assert fired.calls == 1

    def test_rapid_cycling_never_fires_more_than_once(self, clock):
        detector, fired = make_detector(clock)
        for _ in range(25):
            detector.set_present(True)
            clock.tick(3)
            detector.set_present(False)
        assert fired.calls == 0

        detector.set_present(True)
        clock.tick(30)
        for _ in range(10):
            detector.set_present(False)
            detector.set_present(True)
            clock.tick(35)
        assert fired.calls == 1

    def test_duplicate_enter_events_do_not_restart_the_dwell(self, clock):
        detector, fired = make_detector(clock)
        detector.set_present(True)
        clock.tick(15)
        detector.set_present(True)
        clock.tick(15)
        assert fired.calls == 1


class TestPausing:
    def test_monitoring_off_pauses_without_reset(self, clock):
        detector, fired = make_detector(clock)
        detector.set_present(True)
        clock.tick(10)
        detector.set_monitoring(False)
        clock.tick(50)
        assert detector.elapsed == pytest.approx(1.0)
        assert fired.calls == 0

        detector.set_monitoring(True)
        clock.tick(19)
        assert fired.calls == 0
        clock.tick(1)
        assert fired.calls == 1

    def test_status_change_pauses_and_pending_rearms(self, clock):
        detector, fired = make_detector(clock)
        detector.set_present(True)
        clock.tick(30)
        assert fired.calls == 1

        detector.set_status(VerificationStatus.SCANNING)
        clock.tick(40)
        detector.set_status(VerificationStatus.ALERT)
        clock.tick(40)
        assert fired.calls == 1

        detector.set_status(VerificationStatus.PENDING)
        assert detector.elapsed == 0.0
        clock.tick(30)
        assert fired.calls == 2

    def test_not_rearmed_by_leaving_while_still_pending(self, clock):
        detector, fired = make_detector(clock)
        detector.set_present(True)
        clock.tick(30)
        detector.set_present(False)
        detector.set_present(True)
        clock.tick(60)
        assert fired.calls == 1


class TestRearm:
    def test_rearm_clears_completion_while_still_pending(self, clock):
        detector, fired = make_detector(clock)
        detector.set_present(True)
        clock.tick(30)
        assert fired.calls == 1

        detector.rearm()
        assert not detector.completed
        assert detector.elapsed == 0.0
        clock.tick(30)
        assert fired.calls == 2

    def test_rearm_from_terminal_status(self, clock):
        detector, fired = make_detector(clock)
        detector.set_present(True)
        clock.tick(30)
        detector.set_status(VerificationStatus.VERIFIED)

        detector.rearm()
        clock.tick(30)
        assert fired.calls == 2

    def test_rearm_without_monitoring_waits_for_toggle(self, clock):
        detector, fired = make_detector(clock)
        detector.set_present(True)
        clock.tick(30)
        detector.set_monitoring(False)
        detector.rearm()
        assert clock.pending == 0

        detector.set_monitoring(True)
        clock.tick(30)
        assert fired.calls == 2

    def test_rearm_after_close_is_ignored(self, clock):
        detector, fired = make_detector(clock)
        detector.set_present(True)
        detector.close()
        detector.rearm()
        clock.tick(60)
        assert fired.calls == 0


class TestTeardown:
    def test_close_cancels_pending_deadline(self, clock):
        detector, fired = make_detector(clock)
        detector.set_present(True)
        clock.tick(15)
        assert clock.pending == 1

        detector.close()
        assert clock.pending == 0
        clock.tick(60)
        assert fired.calls == 0

    def test_inputs_after_close_are_ignored(self, clock):
        detector, fired = make_detector(clock)
        detector.close()
        detector.set_present(True)
        clock.tick(60)
        assert fired.calls == 0
        assert clock.pending == 0

    def test_leaving_cancels_deadline(self, clock):
        detector, _ = make_detector(clock)
        detector.set_present(True)
        detector.set_present(False)
        assert clock.pending == 0


@pytest.mark.asyncio
async def test_fires_on_the_running_event_loop():
    fired = Counter()
    detector = DwellDetector(fired, threshold=0.05, monitoring=True)
    detector.set_present(True)
    await asyncio.sleep(0.2)
    assert fired.calls == 1
    detector.close()


@pytest.mark.asyncio
async def test_close_on_event_loop_prevents_callback():
    fired = Counter()
    detector = DwellDetector(fired, threshold=0.05, monitoring=True)
    detector.set_present(True)
    detector.close()
    await asyncio.sleep(0.15)
    assert fired.calls == 0
