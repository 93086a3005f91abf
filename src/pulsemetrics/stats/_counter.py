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

"""Monotonic event counting per collection window."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from ..clock import SYSTEM_CLOCK, MillisClock


@dataclass(frozen=True, slots=True)
class CounterStatistics:
    """Frozen counter state for one collection window.

    Attributes:
        count: Events counted in the window (non-negative).
        start_time: Epoch milliseconds when the window began.
    """

    count: int = 0
    start_time: int = 0

    def is_empty(self) -> bool:
        return self.count == 0


class CounterAccumulator:
    """Concurrency-safe counter that resets on :meth:`collect`.

    Non-positive increments are ignored so the count never decreases within a
    window.
    """

    def __init__(self, *, clock: MillisClock = SYSTEM_CLOCK) -> None:
        super().__init__()
        self._clock = clock
        self._lock = threading.Lock()
        self._count = 0
        self._start_time = clock.millis()

    def increment(self, n: int = 1) -> None:
        if n <= 0:
            return
        with self._lock:
            self._count += n

    def collect(self) -> CounterStatistics:
        """Return the current window and restart counting from zero."""
        start_time = self._clock.millis()
        with self._lock:
            collected = CounterStatistics(self._count, self._start_time)
            self._count = 0
            self._start_time = start_time
        return collected

    def peek(self) -> CounterStatistics:
        with self._lock:
            return CounterStatistics(self._count, self._start_time)

    def reset(self) -> None:
        _ = self.collect()

    @property
    def count(self) -> int:
        with self._lock:
            return self._count


__all__ = ["CounterAccumulator", "CounterStatistics"]
