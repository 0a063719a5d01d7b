"""Unit tests for shared.rate_window."""

from datetime import datetime, timedelta, timezone

from shared.rate_window import (
    REASON_CEILING,
    REASON_COOLDOWN,
    RateWindow,
    effective_count,
    window_elapsed,
)

NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _ago(seconds: float) -> datetime:
    return NOW - timedelta(seconds=seconds)


class TestEffectiveCount:
    def test_no_previous_event_is_fresh_window(self):
        assert window_elapsed(None, 3600, NOW) is True
        assert effective_count(4, None, 3600, NOW) == 0

    def test_inside_window_keeps_count(self):
        assert effective_count(3, _ago(10), 3600, NOW) == 3

    def test_exactly_at_window_boundary_keeps_count(self):
        # the window resets only once strictly more than window_seconds passed
        assert effective_count(3, _ago(3600), 3600, NOW) == 3

    def test_past_window_resets(self):
        assert effective_count(3, _ago(3601), 3600, NOW) == 0


class TestRateWindowCheck:
    def test_allows_first_event(self):
        check = RateWindow(ceiling=5, window_seconds=3600).check(0, None, NOW)
        assert check.allowed
        assert check.reason is None
        assert check.next_count == 1

    def test_ceiling_blocks(self):
        check = RateWindow(ceiling=5, window_seconds=3600).check(5, _ago(600), NOW)
        assert not check.allowed
        assert check.reason == REASON_CEILING
        assert check.retry_after_seconds == 3000

    def test_ceiling_lifts_after_window(self):
        check = RateWindow(ceiling=5, window_seconds=3600).check(5, _ago(3601), NOW)
        assert check.allowed
        assert check.next_count == 1

    def test_cooldown_blocks_before_ceiling(self):
        window = RateWindow(ceiling=5, window_seconds=3600, cooldown_seconds=60)
        check = window.check(1, _ago(30), NOW)
        assert not check.allowed
        assert check.reason == REASON_COOLDOWN
        assert check.retry_after_seconds == 30

    def test_cooldown_reported_even_when_at_ceiling(self):
        window = RateWindow(ceiling=5, window_seconds=3600, cooldown_seconds=60)
        assert window.check(5, _ago(10), NOW).reason == REASON_COOLDOWN

    def test_cooldown_elapsed_allows(self):
        window = RateWindow(ceiling=5, window_seconds=3600, cooldown_seconds=60)
        check = window.check(1, _ago(60), NOW)
        assert check.allowed
        assert check.next_count == 2

    def test_retry_after_is_at_least_one_second(self):
        window = RateWindow(ceiling=5, window_seconds=3600, cooldown_seconds=60)
        assert window.check(1, _ago(59.9), NOW).retry_after_seconds == 1

    def test_zero_cooldown_never_triggers(self):
        check = RateWindow(ceiling=3, window_seconds=3600).check(1, NOW, NOW)
        assert check.allowed
