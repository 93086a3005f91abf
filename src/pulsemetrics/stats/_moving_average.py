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

"""Exponentially decayed moving averages over a raw event count.

The meter keeps one rate per window (10 seconds, 1 minute, 5 minutes). Writers
only add to an ``uncounted`` buffer; a scheduler calls :meth:`tick` on a fixed
cadence (nominally every 5 seconds) which drains the buffer and applies::

    rate = rate + alpha * (instant - rate)
    alpha = 1 - exp(-tick_interval / window)
    instant = drained / tick_interval

Ticks missed while the scheduler was stalled are replayed as idle decays
before the drained count is applied, so a long idle period drives the rate
towards zero rather than freezing it.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Final

from ..clock import SYSTEM_CLOCK, MonotonicClock
from ..errors import MetricConfigurationError

TICK_INTERVAL_SECONDS: Final[float] = 5.0
"""Nominal cadence of :meth:`DecayedRateMeter.tick`."""

TEN_SECONDS: Final[float] = 10.0
ONE_MINUTE: Final[float] = 60.0
FIVE_MINUTES: Final[float] = 300.0

WINDOWS: Final[tuple[float, ...]] = (TEN_SECONDS, ONE_MINUTE, FIVE_MINUTES)
"""Window lengths in seconds, in reporting order."""


def decay_alpha(tick_interval: float, window: float) -> float:
    """Return the EWMA smoothing factor for ``window`` at ``tick_interval``."""
    return 1.0 - math.exp(-tick_interval / window)


@dataclass(frozen=True, slots=True)
class MovingAverages:
    """Point-in-time read of the three decayed rates (events per second).

    Attributes:
        ten_second: Rate over the 10 second window.
        one_minute: Rate over the 1 minute window.
        five_minute: Rate over the 5 minute window.
        description: Label of what is being counted, e.g. ``"events"``.
    """

    ten_second: float
    one_minute: float
    five_minute: float
    description: str = "events"

    def display(self) -> str:
        """Return a compact human readable summary."""
        return (
            f"{self.description} 10s:{self.ten_second:.2f}"
            f" 1m:{self.one_minute:.2f} 5m:{self.five_minute:.2f}"
        )


class DecayedRateMeter:
    """Concurrency-safe set of exponentially decayed rates.

    Args:
        description: Label used by :meth:`moving_averages`.
        tick_interval_seconds: Interval between ticks; must be positive.
        clock: Monotonic time source for tick boundaries.

    Raises:
        MetricConfigurationError: If ``tick_interval_seconds`` is not positive.
    """

    def __init__(
        self,
        description: str = "events",
        *,
        tick_interval_seconds: float = TICK_INTERVAL_SECONDS,
        clock: MonotonicClock = SYSTEM_CLOCK,
    ) -> None:
        super().__init__()
        if not tick_interval_seconds > 0:
            msg = f"tick interval must be positive (got {tick_interval_seconds!r})"
            raise MetricConfigurationError(msg)
        self._description = description
        self._interval = float(tick_interval_seconds)
        self._alphas = tuple(decay_alpha(self._interval, w) for w in WINDOWS)
        self._clock = clock
        # Writers only ever take _buffer_lock; tick() takes _tick_lock first.
        self._buffer_lock = threading.Lock()
        self._tick_lock = threading.Lock()
        self._uncounted = 0
        self._rates = [0.0 for _ in WINDOWS]
        self._initialized = False
        self._last_tick = clock.monotonic()

    @property
    def description(self) -> str:
        return self._description

    @property
    def tick_interval_seconds(self) -> float:
        return self._interval

    def update(self, n: int) -> None:
        """Buffer ``n`` events for the next tick."""
        with self._buffer_lock:
            self._uncounted += n

    def tick(self) -> None:
        """Drain the buffer and advance every window by the elapsed intervals.

        At least one interval is applied per call. When the clock shows that
        ``k`` intervals passed since the last tick boundary, ``k - 1`` idle
        decays are applied before the drained count. A call made before a full
        interval has passed consumes the next interval in advance, so a later
        tick does not decay the same interval again.
        """
        with self._tick_lock:
            elapsed = self._elapsed_ticks(self._clock.monotonic())
            if elapsed == 0:
                self._last_tick += self._interval
                elapsed = 1
            self._tick_locked(elapsed)

    def tick_if_necessary(self) -> bool:
        """Tick only when a full interval has passed since the last boundary.

        Returns:
            True if the meter ticked.
        """
        with self._tick_lock:
            elapsed = self._elapsed_ticks(self._clock.monotonic())
            if elapsed == 0:
                return False
            self._tick_locked(elapsed)
            return True

    def clear(self) -> None:
        """Reset every window and the buffer to the uninitialised state."""
        with self._tick_lock:
            with self._buffer_lock:
                self._uncounted = 0
            self._rates = [0.0 for _ in WINDOWS]
            self._initialized = False
            self._last_tick = self._clock.monotonic()

    def rate(self, window: float) -> float:
        """Return the decayed rate (per second) for one of :data:`WINDOWS`.

        Before the first tick this is the instantaneous rate of the buffered
        events.

        Raises:
            KeyError: If ``window`` is not a configured window.
        """
        try:
            index = WINDOWS.index(window)
        except ValueError:
            raise KeyError(window) from None
        if not self._initialized:
            with self._buffer_lock:
                return self._uncounted / self._interval
        return self._rates[index]

    def ten_second_rate(self) -> float:
        return self.rate(TEN_SECONDS)

    def one_minute_rate(self) -> float:
        return self.rate(ONE_MINUTE)

    def five_minute_rate(self) -> float:
        return self.rate(FIVE_MINUTES)

    def moving_averages(self) -> MovingAverages:
        """Return the three rates as an immutable record."""
        return MovingAverages(
            ten_second=self.ten_second_rate(),
            one_minute=self.one_minute_rate(),
            five_minute=self.five_minute_rate(),
            description=self._description,
        )

    def _elapsed_ticks(self, now: float) -> int:
        age = now - self._last_tick
        if age < self._interval:
            return 0
        elapsed = int(age // self._interval)
        self._last_tick += elapsed * self._interval
        return elapsed

    def _tick_locked(self, elapsed: int) -> None:
        with self._buffer_lock:
            drained = self._uncounted
            self._uncounted = 0
        instant = drained / self._interval

        if not self._initialized:
            # History starts at the first tick; earlier intervals are not replayed.
            self._rates = [instant for _ in WINDOWS]
            self._initialized = True
            return

        rates = self._rates
        for _ in range(max(elapsed, 1) - 1):
            rates = [
                rate * (1.0 - alpha)
                for rate, alpha in zip(rates, self._alphas, strict=True)
            ]
        self._rates = [
            rate + alpha * (instant - rate)
            for rate, alpha in zip(rates, self._alphas, strict=True)
        ]

    def __repr__(self) -> str:
        return f"DecayedRateMeter({self.moving_averages().display()})"


__all__ = [
    "FIVE_MINUTES",
    "ONE_MINUTE",
    "TEN_SECONDS",
    "TICK_INTERVAL_SECONDS",
    "WINDOWS",
    "DecayedRateMeter",
    "MovingAverages",
    "decay_alpha",
]
