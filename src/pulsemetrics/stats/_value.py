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

"""Count, sum, max and min accumulation for a stream of observations."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from ..clock import SYSTEM_CLOCK, MillisClock


@dataclass(frozen=True, slots=True)
class ValueStatistics:
    """Frozen statistics for one collection window.

    Attributes:
        count: Number of observations.
        total: Sum of observed values.
        max: Largest observed value (0 when empty).
        min: Smallest observed value (0 when empty), or None when the
            accumulator does not track the minimum.
        start_time: Epoch milliseconds when the window began.
    """

    count: int = 0
    total: float = 0.0
    max: float = 0.0
    min: float | None = None
    start_time: int = 0

    @property
    def mean(self) -> float:
        """Average of observed values, 0 when the window is empty."""
        if self.count == 0:
            return 0.0
        return self.total / self.count

    def is_empty(self) -> bool:
        return self.count == 0


class _ValueWindow:
    """Mutable window state; only touched under the accumulator lock."""

    __slots__ = ("count", "max", "min", "start_time", "total")

    def __init__(self, start_time: int) -> None:
        super().__init__()
        self.count = 0
        self.total = 0.0
        self.max = 0.0
        self.min = 0.0
        self.start_time = start_time

    def freeze(self, track_min: bool) -> ValueStatistics:
        return ValueStatistics(
            count=self.count,
            total=self.total,
            max=self.max,
            min=self.min if track_min else None,
            start_time=self.start_time,
        )


class ValueAccumulator:
    """Concurrency-safe accumulator producing :class:`ValueStatistics`.

    All fields of a window are updated inside one short critical section, so
    a collected snapshot never shows an incremented count with a stale max.
    :meth:`collect` swaps in a fresh window atomically; every ``add`` lands in
    exactly one window.

    Args:
        track_min: Whether to track the minimum observed value.
        clock: Source of window start times.
    """

    def __init__(
        self, *, track_min: bool = False, clock: MillisClock = SYSTEM_CLOCK
    ) -> None:
        super().__init__()
        self._track_min = track_min
        self._clock = clock
        self._lock = threading.Lock()
        self._window = _ValueWindow(clock.millis())

    @property
    def track_min(self) -> bool:
        return self._track_min

    def add(self, value: float) -> None:
        """Record one observation."""
        with self._lock:
            window = self._window
            if window.count == 0:
                window.max = value
                window.min = value
            else:
                if value > window.max:
                    window.max = value
                if value < window.min:
                    window.min = value
            window.count += 1
            window.total += value

    def collect(self) -> ValueStatistics:
        """Return the current window and start a new one at the current time."""
        fresh = _ValueWindow(self._clock.millis())
        with self._lock:
            previous, self._window = self._window, fresh
        return previous.freeze(self._track_min)

    def peek(self) -> ValueStatistics:
        """Return the current window without resetting it."""
        with self._lock:
            return self._window.freeze(self._track_min)

    def reset(self) -> None:
        """Discard the current window."""
        _ = self.collect()

    @property
    def count(self) -> int:
        with self._lock:
            return self._window.count


__all__ = ["ValueAccumulator", "ValueStatistics"]
