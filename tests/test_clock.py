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

"""Tests for :mod:`scriptfs.clock`."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

import pytest

from scriptfs.clock import SYSTEM_CLOCK, FakeClock, SystemClock, WallClock


class TestWallClockProtocol:
    """Both clocks satisfy the WallClock protocol."""

    def test_system_clock_satisfies_wall_clock(self) -> None:
        assert isinstance(SYSTEM_CLOCK, WallClock)
        assert isinstance(SYSTEM_CLOCK, SystemClock)

    def test_fake_clock_satisfies_wall_clock(self) -> None:
        assert isinstance(FakeClock(), WallClock)


class TestSystemClock:
    def test_utcnow_is_timezone_aware(self) -> None:
        now = SYSTEM_CLOCK.utcnow()

        assert now.tzinfo is not None
        assert now.utcoffset() == timedelta(0)

    def test_utcnow_tracks_real_time(self) -> None:
        before = datetime.now(UTC)
        now = SYSTEM_CLOCK.utcnow()
        after = datetime.now(UTC)

        assert before <= now <= after


class TestFakeClock:
    def test_defaults_to_fixed_instant(self) -> None:
        assert FakeClock().utcnow() == datetime(2024, 1, 1, tzinfo=UTC)

    def test_time_only_moves_when_advanced(self) -> None:
        clock = FakeClock()
        start = clock.utcnow()

        assert clock.utcnow() == start

        clock.advance(1.5)

        assert clock.utcnow() - start == timedelta(seconds=1.5)

    def test_advance_zero_is_noop(self) -> None:
        clock = FakeClock()
        start = clock.utcnow()

        clock.advance(0)

        assert clock.utcnow() == start

    def test_advance_negative_raises(self) -> None:
        clock = FakeClock()

        with pytest.raises(ValueError, match="negative"):
            clock.advance(-1)

    def test_set_wall(self) -> None:
        clock = FakeClock()
        target = datetime(2030, 6, 1, 12, 0, tzinfo=UTC)

        clock.set_wall(target)

        assert clock.utcnow() == target

    def test_set_wall_rejects_naive_datetime(self) -> None:
        clock = FakeClock()

        with pytest.raises(ValueError, match="timezone-aware"):
            clock.set_wall(datetime(2030, 6, 1))

    def test_concurrent_advances_are_not_lost(self) -> None:
        clock = FakeClock()
        start = clock.utcnow()

        def advance_many() -> None:
            for _ in range(100):
                clock.advance(1)

        threads = [threading.Thread(target=advance_many) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert clock.utcnow() - start == timedelta(seconds=400)
