# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Controllable wall clock for modification timestamps.

The in-memory tree stamps every structural change with the current UTC time.
Filesystems take a :class:`WallClock` so tests can pin and advance time
instead of depending on the system clock's resolution.

Example (production)::

    from scriptfs.clock import SYSTEM_CLOCK

    stamp = SYSTEM_CLOCK.utcnow()

Example (testing)::

    from scriptfs.clock import FakeClock

    clock = FakeClock()
    before = clock.utcnow()
    clock.advance(10)
    assert (clock.utcnow() - before).total_seconds() == 10
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Final, Protocol, runtime_checkable


@runtime_checkable
class WallClock(Protocol):
    """Protocol for wall-clock time measurement.

    Wall clocks provide the current UTC datetime. They can jump (NTP
    adjustments), so the tree treats modification times as a running maximum
    rather than trusting them to be monotonic.
    """

    def utcnow(self) -> datetime:
        """Return current UTC datetime (timezone-aware)."""
        ...


@dataclass(frozen=True, slots=True)
class SystemClock:
    """Production clock delegating to ``datetime.now(UTC)``."""

    def utcnow(self) -> datetime:
        """Return current UTC datetime."""
        return datetime.now(UTC)


SYSTEM_CLOCK: Final[WallClock] = SystemClock()
"""Default system clock instance."""


@dataclass
class FakeClock:
    """Controllable clock for deterministic testing.

    Time only moves when :meth:`advance` or :meth:`set_wall` is called.

    Thread-safety:
        All operations are thread-safe.
    """

    _wall: datetime = field(default_factory=lambda: datetime(2024, 1, 1, tzinfo=UTC))
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def utcnow(self) -> datetime:
        """Return current wall-clock time."""
        with self._lock:
            return self._wall

    def advance(self, seconds: float) -> None:
        """Advance the clock by the given duration.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            msg = "Cannot advance time by negative seconds"
            raise ValueError(msg)
        with self._lock:
            self._wall += timedelta(seconds=seconds)

    def set_wall(self, value: datetime) -> None:
        """Set wall-clock time to an absolute value.

        Raises:
            ValueError: If value is not timezone-aware.
        """
        if value.tzinfo is None:
            msg = "Wall clock time must be timezone-aware"
            raise ValueError(msg)
        with self._lock:
            self._wall = value


__all__ = [
    "SYSTEM_CLOCK",
    "FakeClock",
    "SystemClock",
    "WallClock",
]
