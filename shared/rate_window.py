"""
Rolling-window event counting — pure functions, no I/O, no clock access.

A window is rolled forward lazily: the stored ``(count, last_event_at)`` pair
is only reinterpreted when an action touches it, so no expiry job exists.

Usage pattern for every throttle:

    check = window.check(doc.otp_resend_count, doc.otp_last_sent_at, now)
    if not check.allowed:
        raise ResendThrottled(details={"retry_after": check.retry_after_seconds})
    changes = {"otp_resend_count": check.next_count, "otp_last_sent_at": now}

and the changes are persisted atomically with the action's other writes.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from shared.datetime_utils import seconds_between

REASON_COOLDOWN = "cooldown"
REASON_CEILING = "ceiling"


def window_elapsed(
    last_event_at: Optional[datetime], window_seconds: int, now: datetime
) -> bool:
    """True when no event was recorded or the last one is older than the window."""
    if last_event_at is None:
        return True
    return seconds_between(last_event_at, now) > window_seconds


def effective_count(
    count: int,
    last_event_at: Optional[datetime],
    window_seconds: int,
    now: datetime,
) -> int:
    """Count to use *before* recording a new event.

    Returns 0 when the window has elapsed (fresh window), else *count* unchanged.
    """
    if window_elapsed(last_event_at, window_seconds, now):
        return 0
    return count


@dataclass(frozen=True)
class WindowCheck:
    effective_count: int
    allowed: bool
    reason: Optional[str] = None
    retry_after_seconds: int = 0

    @property
    def next_count(self) -> int:
        """Value to persist when the action goes ahead."""
        return self.effective_count + 1


@dataclass(frozen=True)
class RateWindow:
    """A ceiling of ``ceiling`` events per ``window_seconds``, with an optional
    minimum gap of ``cooldown_seconds`` between consecutive events."""

    ceiling: int
    window_seconds: int
    cooldown_seconds: int = 0

    def check(
        self, count: int, last_event_at: Optional[datetime], now: datetime
    ) -> WindowCheck:
        current = effective_count(count, last_event_at, self.window_seconds, now)

        if self.cooldown_seconds and last_event_at is not None:
            since_last = seconds_between(last_event_at, now)
            if since_last < self.cooldown_seconds:
                return WindowCheck(
                    effective_count=current,
                    allowed=False,
                    reason=REASON_COOLDOWN,
                    retry_after_seconds=max(
                        1, math.ceil(self.cooldown_seconds - since_last)
                    ),
                )

        if current >= self.ceiling:
            # last_event_at is set here: a fresh window always has current == 0
            remaining = self.window_seconds - seconds_between(last_event_at, now)
            return WindowCheck(
                effective_count=current,
                allowed=False,
                reason=REASON_CEILING,
                retry_after_seconds=max(1, math.ceil(remaining)),
            )

        return WindowCheck(effective_count=current, allowed=True)
