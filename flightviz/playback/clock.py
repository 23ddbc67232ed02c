"""
Simulation clock.

Simulated time advances by wall-clock seconds times a multiplier, so a
multi-hour flight plays back in minutes at the default 30x. The clock
always satisfies start <= current <= stop; what happens at the bounds is
decided by the clock range policy.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional


class ClockRange(str, Enum):
    """Behavior when playback reaches a bound."""
    CLAMPED = 'clamped'      # stop at the end
    LOOP_STOP = 'loop_stop'  # wrap back to the start


@dataclass
class PlaybackClock:
    """Start/current/stop bounds plus playback rate and range policy."""
    start: datetime
    stop: datetime
    current: Optional[datetime] = None
    multiplier: float = 30.0
    clock_range: ClockRange = ClockRange.CLAMPED
    playing: bool = True

    def __post_init__(self):
        if self.stop < self.start:
            raise ValueError(f'clock stop {self.stop} is before start {self.start}')
        if self.current is None:
            self.current = self.start
        self.current = self._clamp(self.current)

    def _clamp(self, ts: datetime) -> datetime:
        return max(self.start, min(self.stop, ts))

    @property
    def duration(self) -> timedelta:
        return self.stop - self.start

    @property
    def progress(self) -> float:
        """Fraction of the playback range already covered (0.0 - 1.0)."""
        total = self.duration.total_seconds()
        if total <= 0:
            return 1.0
        return (self.current - self.start).total_seconds() / total

    @property
    def at_end(self) -> bool:
        return self.current >= self.stop

    def advance(self, wall_seconds: float) -> datetime:
        """Move simulated time forward by wall_seconds * multiplier."""
        if not self.playing or wall_seconds <= 0:
            return self.current

        target = self.current + timedelta(seconds=wall_seconds * self.multiplier)

        if self.clock_range == ClockRange.LOOP_STOP and target > self.stop:
            span = self.duration.total_seconds()
            if span > 0:
                overshoot = (target - self.start).total_seconds() % span
                target = self.start + timedelta(seconds=overshoot)
            else:
                target = self.start
        elif self.clock_range == ClockRange.LOOP_STOP and target < self.start:
            target = self.stop

        self.current = self._clamp(target)
        return self.current

    def seek(self, ts: datetime) -> datetime:
        """Jump to a simulated time, clamped into range."""
        self.current = self._clamp(ts)
        return self.current

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        return {
            'start': self.start.isoformat(),
            'current': self.current.isoformat(),
            'stop': self.stop.isoformat(),
            'multiplier': self.multiplier,
            'clock_range': self.clock_range.value,
            'playing': self.playing,
            'progress': round(self.progress, 4),
        }
