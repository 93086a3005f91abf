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

"""Moving averages of event counts and workload magnitude."""

from __future__ import annotations

import threading
from typing import Final

from ..clock import SYSTEM_CLOCK, MonotonicClock
from ._moving_average import TICK_INTERVAL_SECONDS, DecayedRateMeter, MovingAverages

EMPTY_RATE_EPSILON: Final[float] = 1e-3
"""Event rates below this value count as idle."""

# Empirical cut-offs choosing which window answers is_empty().
_TEN_SECOND_THRESHOLD: Final[int] = 30
_ONE_MINUTE_THRESHOLD: Final[int] = 90


class LoadCollector:
    """Tracks event and load rates plus running totals for one metric.

    Args:
        clock: Monotonic time source shared by both meters.
        tick_interval_seconds: Tick cadence of both meters.
        event_description: Label of the event-rate meter.
        load_description: Label of the load-rate meter.
    """

    def __init__(
        self,
        *,
        clock: MonotonicClock = SYSTEM_CLOCK,
        tick_interval_seconds: float = TICK_INTERVAL_SECONDS,
        event_description: str = "events",
        load_description: str = "load",
    ) -> None:
        super().__init__()
        self._event_rate = DecayedRateMeter(
            event_description, tick_interval_seconds=tick_interval_seconds, clock=clock
        )
        self._load_rate = DecayedRateMeter(
            load_description, tick_interval_seconds=tick_interval_seconds, clock=clock
        )
        self._lock = threading.Lock()
        self._total_count = 0
        self._total_load = 0

    def update(self, event_count: int, load: int) -> None:
        """Add to both totals and buffer both values for the next tick."""
        with self._lock:
            self._total_count += event_count
            self._total_load += load
            self._event_rate.update(event_count)
            self._load_rate.update(load)

    def tick(self) -> None:
        self._event_rate.tick()
        self._load_rate.tick()

    def tick_if_necessary(self) -> None:
        _ = self._event_rate.tick_if_necessary()
        _ = self._load_rate.tick_if_necessary()

    def clear(self) -> None:
        with self._lock:
            self._event_rate.clear()
            self._load_rate.clear()
            self._total_count = 0
            self._total_load = 0

    def is_empty(self, threshold_seconds: float) -> bool:
        """Return True when the event rate for the matching window is idle.

        Thresholds up to 30 seconds consult the 10 second window, up to 90
        seconds the 1 minute window, anything longer the 5 minute window.
        """
        if threshold_seconds <= _TEN_SECOND_THRESHOLD:
            rate = self._event_rate.ten_second_rate()
        elif threshold_seconds <= _ONE_MINUTE_THRESHOLD:
            rate = self._event_rate.one_minute_rate()
        else:
            rate = self._event_rate.five_minute_rate()
        return rate < EMPTY_RATE_EPSILON

    @property
    def total_count(self) -> int:
        with self._lock:
            return self._total_count

    @property
    def total_load(self) -> int:
        with self._lock:
            return self._total_load

    @property
    def event_meter(self) -> DecayedRateMeter:
        return self._event_rate

    @property
    def load_meter(self) -> DecayedRateMeter:
        return self._load_rate

    def event_moving_averages(self) -> MovingAverages:
        return self._event_rate.moving_averages()

    def load_moving_averages(self) -> MovingAverages:
        return self._load_rate.moving_averages()

    def __str__(self) -> str:
        events = self.event_moving_averages()
        load = self.load_moving_averages()
        return (
            f"totalCount:{self.total_count} totalLoad:{self.total_load}"
            f" events.1m:{events.one_minute:.2f} load.1m:{load.one_minute:.2f}"
            f" load.10s:{load.ten_second:.2f}"
        )


__all__ = ["EMPTY_RATE_EPSILON", "LoadCollector"]
