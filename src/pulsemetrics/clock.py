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

"""Controllable time sources for metric accumulators.

Two time domains are used by the statistics engine:

- **Epoch milliseconds** (int): Window start times and report timestamps.
  Serialized durations are computed from these values.

- **Monotonic time** (float seconds): Tick boundaries of the decayed rate
  meters. Guaranteed to never go backwards.

Example (production)::

    from pulsemetrics.clock import SYSTEM_CLOCK

    started = SYSTEM_CLOCK.millis()

Example (testing)::

    from pulsemetrics.clock import FakeClock

    clock = FakeClock()
    meter = DecayedRateMeter(clock=clock)
    meter.update(10)
    clock.advance(5)
    meter.tick()
"""

from __future__ import annotations

import threading
import time as _time
from dataclasses import dataclass, field
from typing import Final, Protocol, runtime_checkable

_DEFAULT_FAKE_EPOCH_MS = 1_704_067_200_000  # 2024-01-01T00:00:00Z


@runtime_checkable
class MillisClock(Protocol):
    """Protocol for wall-clock time as epoch milliseconds."""

    def millis(self) -> int:
        """Return the current time in milliseconds since the epoch."""
        ...


@runtime_checkable
class MonotonicClock(Protocol):
    """Protocol for monotonic time measurement.

    The zero point is arbitrary and not related to wall-clock time.
    """

    def monotonic(self) -> float:
        """Return monotonic time in seconds."""
        ...


@runtime_checkable
class Clock(MillisClock, MonotonicClock, Protocol):
    """Unified clock combining epoch milliseconds and monotonic time."""

    pass


@dataclass(frozen=True, slots=True)
class SystemClock:
    """Production clock backed by :func:`time.time_ns` and :func:`time.monotonic`."""

    def millis(self) -> int:
        """Return epoch milliseconds from the system clock."""
        return _time.time_ns() // 1_000_000

    def monotonic(self) -> float:
        """Return monotonic time from time.monotonic()."""
        return _time.monotonic()


SYSTEM_CLOCK: Final[Clock] = SystemClock()
"""Default system clock instance.

Every accumulator, meter and writer defaults to this clock. Tests inject
:class:`FakeClock` instead.
"""


@dataclass
class FakeClock:
    """Controllable clock for deterministic testing.

    Both time domains advance together when :meth:`advance` is called.

    Example::

        clock = FakeClock()
        start = clock.millis()
        clock.advance(2.5)
        assert clock.millis() - start == 2500

    Thread-safety:
        All operations are thread-safe.
    """

    _millis: int = _DEFAULT_FAKE_EPOCH_MS
    _monotonic: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def millis(self) -> int:
        """Return current epoch milliseconds."""
        with self._lock:
            return self._millis

    def monotonic(self) -> float:
        """Return current monotonic time."""
        with self._lock:
            return self._monotonic

    def advance(self, seconds: float) -> None:
        """Advance both clocks by the given duration.

        Args:
            seconds: Duration to advance in seconds (must be non-negative).

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            msg = "Cannot advance time by negative seconds"
            raise ValueError(msg)
        with self._lock:
            self._monotonic += seconds
            self._millis += round(seconds * 1000)

    def set_millis(self, value: int) -> None:
        """Set wall-clock time to an absolute epoch-millisecond value."""
        with self._lock:
            self._millis = value


__all__ = [
    "SYSTEM_CLOCK",
    "Clock",
    "FakeClock",
    "MillisClock",
    "MonotonicClock",
    "SystemClock",
]
