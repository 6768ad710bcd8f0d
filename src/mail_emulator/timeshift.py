"""Translate corpus timestamps into a recent window.

The shift is a single offset, computed in whole milliseconds so that every
gap between two messages survives the round trip through ``internalDate``
exactly. Nothing is rescaled.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from mail_emulator.models import TimeWindow

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_epoch_ms(ts: datetime) -> int:
    """Exact epoch milliseconds for an aware datetime (naive values are taken as UTC)."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    delta = ts - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def from_epoch_ms(ms: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=ms)


@dataclass(frozen=True)
class TimeShifter:
    """Applies ``shifted = original + offset`` to every timestamp."""

    offset_ms: int
    original_start: datetime | None = None
    original_end: datetime | None = None
    window_end: datetime | None = None

    @classmethod
    def fit(cls, timestamps: Iterable[datetime], window_end: datetime | None = None) -> TimeShifter:
        """Compute the offset that moves the newest timestamp onto ``window_end``.

        Args:
            timestamps: Original message timestamps.
            window_end: Target for the newest message; defaults to now (UTC).
        """
        end = window_end or datetime.now(timezone.utc)
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)
        # Truncate to the millisecond resolution of internalDate.
        end = from_epoch_ms(to_epoch_ms(end))

        values = [to_epoch_ms(ts) for ts in timestamps]
        if not values:
            return cls(offset_ms=0, window_end=end)

        lo, hi = min(values), max(values)
        return cls(
            offset_ms=to_epoch_ms(end) - hi,
            original_start=from_epoch_ms(lo),
            original_end=from_epoch_ms(hi),
            window_end=end,
        )

    def shift_ms(self, ts: datetime) -> int:
        return to_epoch_ms(ts) + self.offset_ms

    def shift(self, ts: datetime) -> datetime:
        return from_epoch_ms(self.shift_ms(ts))

    def describe(self) -> TimeWindow:
        return TimeWindow(
            offset_millis=self.offset_ms,
            original_start=self.original_start,
            original_end=self.original_end,
            window_end=self.window_end or _EPOCH,
        )
