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

"""Live metrics: accumulators bound to a name, collected into snapshots."""

from __future__ import annotations

import bisect
import math
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import Protocol, runtime_checkable

from ._name import MetricName, as_metric_name
from ._snapshot import (
    BucketTimedMetricSnapshot,
    CounterMetricSnapshot,
    GaugeDoubleGroupSnapshot,
    GaugeDoubleSnapshot,
    GaugeLongGroupSnapshot,
    GaugeLongSnapshot,
    MetricSnapshot,
    TimedMetricSnapshot,
    ValueMetricSnapshot,
    validate_bucket_ranges,
)
from .clock import SYSTEM_CLOCK, Clock
from .stats import (
    TICK_INTERVAL_SECONDS,
    CounterAccumulator,
    LoadCollector,
    ValueAccumulator,
)


@runtime_checkable
class Metric(Protocol):
    """Protocol shared by every live metric."""

    @property
    def name(self) -> MetricName:
        """Identity the metric is collected under."""
        ...

    def collect(self) -> MetricSnapshot:
        """Freeze the current state into a snapshot and start a new window."""
        ...

    def is_empty(self) -> bool:
        """Return True when nothing was observed in the current window."""
        ...

    def clear(self) -> None:
        """Discard all accumulated state."""
        ...


@runtime_checkable
class TickingMetric(Metric, Protocol):
    """Metric maintaining decayed rates that need periodic ticks."""

    def tick(self) -> None:
        """Advance decayed rates by one tick interval."""
        ...


class TimedMetric:
    """Durations of an operation, split into successes and errors.

    Durations are conventionally milliseconds. Every observation also feeds a
    :class:`~pulsemetrics.stats.LoadCollector` (one event, load = duration)
    whose decayed event rate answers :meth:`is_idle`.

    Non-finite durations are recorded in the statistics and counted as events,
    but add no load.

    Example::

        timed = TimedMetric(MetricName.parse("web.orders.create"))
        with timed.time():
            create_order()
    """

    def __init__(
        self,
        name: MetricName | str,
        *,
        clock: Clock = SYSTEM_CLOCK,
        track_min: bool = False,
        tick_interval_seconds: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        super().__init__()
        self._name = as_metric_name(name)
        self._clock = clock
        self._success = ValueAccumulator(track_min=track_min, clock=clock)
        self._error = ValueAccumulator(track_min=track_min, clock=clock)
        self._load = LoadCollector(
            clock=clock,
            tick_interval_seconds=tick_interval_seconds,
            load_description="duration",
        )

    @property
    def name(self) -> MetricName:
        return self._name

    @property
    def load(self) -> LoadCollector:
        return self._load

    def add_event_duration(self, success: bool, duration: float) -> None:
        """Record one execution that took ``duration``."""
        load = round(duration) if math.isfinite(duration) else 0
        if success:
            self._success.add(duration)
        else:
            self._error.add(duration)
        self._load.update(1, load)

    def add_success(self, duration: float) -> None:
        self.add_event_duration(True, duration)

    def add_error(self, duration: float) -> None:
        self.add_event_duration(False, duration)

    @contextmanager
    def time(self) -> Iterator[None]:
        """Time the enclosed block in milliseconds.

        The block is recorded as an error when it raises; the exception
        propagates unchanged.
        """
        started = self._clock.monotonic()
        success = False
        try:
            yield
            success = True
        finally:
            elapsed_ms = round((self._clock.monotonic() - started) * 1000)
            self.add_event_duration(success, elapsed_ms)

    def tick(self) -> None:
        self._load.tick()

    def is_idle(self, threshold_seconds: float) -> bool:
        """Return True when the decayed event rate shows no recent activity."""
        return self._load.is_empty(threshold_seconds)

    def is_empty(self) -> bool:
        return self._success.count == 0 and self._error.count == 0

    def collect(self) -> TimedMetricSnapshot:
        return TimedMetricSnapshot(
            name=self._name,
            success=self._success.collect(),
            error=self._error.collect(),
        )

    def clear(self) -> None:
        self._success.reset()
        self._error.reset()
        self._load.clear()


class BucketTimedMetric:
    """Timed metric whose observations are partitioned by duration ranges.

    ``bucket_ranges`` of ``[10, 50]`` produce three buckets: ``0-10``,
    ``10-50`` and ``50+``. An observation goes to the first bucket whose upper
    bound is greater than or equal to it.

    Raises:
        MetricConfigurationError: If the ranges are empty or decrease.
    """

    def __init__(
        self,
        name: MetricName | str,
        bucket_ranges: Sequence[int],
        *,
        clock: Clock = SYSTEM_CLOCK,
        tick_interval_seconds: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        super().__init__()
        self._name = as_metric_name(name)
        self._ranges = validate_bucket_ranges(bucket_ranges)
        self._clock = clock
        self._buckets = tuple(
            TimedMetric(
                self._bucket_name(index),
                clock=clock,
                tick_interval_seconds=tick_interval_seconds,
            )
            for index in range(len(self._ranges) + 1)
        )

    @property
    def name(self) -> MetricName:
        return self._name

    @property
    def bucket_ranges(self) -> tuple[int, ...]:
        return self._ranges

    @property
    def buckets(self) -> tuple[TimedMetric, ...]:
        return self._buckets

    def bucket_for(self, duration: float) -> TimedMetric:
        return self._buckets[bisect.bisect_left(self._ranges, duration)]

    def add_event_duration(self, success: bool, duration: float) -> None:
        self.bucket_for(duration).add_event_duration(success, duration)

    def add_success(self, duration: float) -> None:
        self.add_event_duration(True, duration)

    def add_error(self, duration: float) -> None:
        self.add_event_duration(False, duration)

    @contextmanager
    def time(self) -> Iterator[None]:
        """Time the enclosed block in milliseconds, see :meth:`TimedMetric.time`."""
        started = self._clock.monotonic()
        success = False
        try:
            yield
            success = True
        finally:
            elapsed_ms = round((self._clock.monotonic() - started) * 1000)
            self.add_event_duration(success, elapsed_ms)

    def tick(self) -> None:
        for bucket in self._buckets:
            bucket.tick()

    def is_empty(self) -> bool:
        return all(bucket.is_empty() for bucket in self._buckets)

    def collect(self) -> BucketTimedMetricSnapshot:
        return BucketTimedMetricSnapshot(
            name=self._name,
            bucket_ranges=self._ranges,
            buckets=tuple(bucket.collect() for bucket in self._buckets),
        )

    def clear(self) -> None:
        for bucket in self._buckets:
            bucket.clear()

    def _bucket_name(self, index: int) -> MetricName:
        lower = 0 if index == 0 else self._ranges[index - 1]
        if index == len(self._ranges):
            label = f"{lower}+"
        else:
            label = f"{lower}-{self._ranges[index]}"
        if self._name.name:
            return self._name.derive_with_name_suffix(f".{label}")
        return self._name.derive_with_name(label)


class ValueMetric:
    """Distribution of arbitrary values, e.g. payload sizes or row counts."""

    def __init__(
        self,
        name: MetricName | str,
        *,
        clock: Clock = SYSTEM_CLOCK,
        track_min: bool = False,
    ) -> None:
        super().__init__()
        self._name = as_metric_name(name)
        self._values = ValueAccumulator(track_min=track_min, clock=clock)

    @property
    def name(self) -> MetricName:
        return self._name

    def add(self, value: float) -> None:
        self._values.add(value)

    def is_empty(self) -> bool:
        return self._values.count == 0

    def collect(self) -> ValueMetricSnapshot:
        return ValueMetricSnapshot(name=self._name, statistics=self._values.collect())

    def clear(self) -> None:
        self._values.reset()


class CounterMetric:
    """Count of events per collection window."""

    def __init__(self, name: MetricName | str, *, clock: Clock = SYSTEM_CLOCK) -> None:
        super().__init__()
        self._name = as_metric_name(name)
        self._counter = CounterAccumulator(clock=clock)

    @property
    def name(self) -> MetricName:
        return self._name

    @property
    def count(self) -> int:
        return self._counter.count

    def increment(self, n: int = 1) -> None:
        self._counter.increment(n)

    def mark_event(self) -> None:
        self._counter.increment()

    def is_empty(self) -> bool:
        return self._counter.count == 0

    def collect(self) -> CounterMetricSnapshot:
        return CounterMetricSnapshot(
            name=self._name, statistics=self._counter.collect()
        )

    def clear(self) -> None:
        self._counter.reset()


class GaugeDoubleMetric:
    """Floating point value read from ``supplier`` at collection time."""

    def __init__(self, name: MetricName | str, supplier: Callable[[], float]) -> None:
        super().__init__()
        self._name = as_metric_name(name)
        self._supplier = supplier

    @property
    def name(self) -> MetricName:
        return self._name

    @property
    def value(self) -> float:
        return float(self._supplier())

    def is_empty(self) -> bool:
        return False

    def collect(self) -> GaugeDoubleSnapshot:
        return GaugeDoubleSnapshot(name=self._name, value=self.value)

    def clear(self) -> None:
        pass


class GaugeLongMetric:
    """Integer value read from ``supplier`` at collection time."""

    def __init__(self, name: MetricName | str, supplier: Callable[[], int]) -> None:
        super().__init__()
        self._name = as_metric_name(name)
        self._supplier = supplier

    @property
    def name(self) -> MetricName:
        return self._name

    @property
    def value(self) -> int:
        return int(self._supplier())

    def is_empty(self) -> bool:
        return False

    def collect(self) -> GaugeLongSnapshot:
        return GaugeLongSnapshot(name=self._name, value=self.value)

    def clear(self) -> None:
        pass


class GaugeDoubleGroup:
    """Related floating point gauges reported together, in member order."""

    def __init__(
        self, name: MetricName | str, gauges: Sequence[GaugeDoubleMetric]
    ) -> None:
        super().__init__()
        self._name = as_metric_name(name)
        self._gauges = tuple(gauges)

    @property
    def name(self) -> MetricName:
        return self._name

    @property
    def gauges(self) -> tuple[GaugeDoubleMetric, ...]:
        return self._gauges

    def is_empty(self) -> bool:
        return not self._gauges

    def collect(self) -> GaugeDoubleGroupSnapshot:
        return GaugeDoubleGroupSnapshot(
            name=self._name, gauges=tuple(gauge.collect() for gauge in self._gauges)
        )

    def clear(self) -> None:
        pass


class GaugeLongGroup:
    """Related integer gauges reported together, in member order."""

    def __init__(
        self, name: MetricName | str, gauges: Sequence[GaugeLongMetric]
    ) -> None:
        super().__init__()
        self._name = as_metric_name(name)
        self._gauges = tuple(gauges)

    @property
    def name(self) -> MetricName:
        return self._name

    @property
    def gauges(self) -> tuple[GaugeLongMetric, ...]:
        return self._gauges

    def is_empty(self) -> bool:
        return not self._gauges

    def collect(self) -> GaugeLongGroupSnapshot:
        return GaugeLongGroupSnapshot(
            name=self._name, gauges=tuple(gauge.collect() for gauge in self._gauges)
        )

    def clear(self) -> None:
        pass


__all__ = [
    "BucketTimedMetric",
    "CounterMetric",
    "GaugeDoubleGroup",
    "GaugeDoubleMetric",
    "GaugeLongGroup",
    "GaugeLongMetric",
    "Metric",
    "TickingMetric",
    "TimedMetric",
    "ValueMetric",
]
