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

"""Explicitly constructed registry of live metrics."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import TypeVar

from ._logging import StructuredLogger, get_logger
from ._metrics import (
    BucketTimedMetric,
    CounterMetric,
    Metric,
    TickingMetric,
    TimedMetric,
    ValueMetric,
)
from ._name import MetricName, as_metric_name
from ._snapshot import MetricSnapshot
from .clock import SYSTEM_CLOCK, Clock
from .errors import MetricConfigurationError
from .stats import TICK_INTERVAL_SECONDS

M = TypeVar("M", bound=Metric)

logger: StructuredLogger = get_logger(__name__, context={"component": "registry"})


@dataclass(frozen=True, slots=True)
class CollectedMetrics:
    """Snapshots gathered by one :meth:`MetricRegistry.collect` pass.

    Attributes:
        snapshots: Collected snapshots ordered by metric name.
        collected_at: Epoch milliseconds when the pass started.
    """

    snapshots: tuple[MetricSnapshot, ...]
    collected_at: int

    def __len__(self) -> int:
        return len(self.snapshots)

    def __iter__(self) -> Iterator[MetricSnapshot]:
        return iter(self.snapshots)


class MetricRegistry:
    """Thread-safe name table of live metrics.

    Registries are ordinary objects: construct one at start-up and pass it to
    the code that records metrics. Tests construct isolated registries.

    Args:
        clock: Clock handed to every metric the registry creates.
        tick_interval_seconds: Tick cadence of the decayed rates kept by the
            timed metrics the registry creates. Whoever calls :meth:`tick`
            must call it at this cadence.

    Raises:
        MetricConfigurationError: If ``tick_interval_seconds`` is not positive.
    """

    def __init__(
        self,
        *,
        clock: Clock = SYSTEM_CLOCK,
        tick_interval_seconds: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        super().__init__()
        if not tick_interval_seconds > 0:
            msg = f"tick interval must be positive (got {tick_interval_seconds!r})"
            raise MetricConfigurationError(msg)
        self._clock = clock
        self._tick_interval = float(tick_interval_seconds)
        self._lock = threading.Lock()
        self._metrics: dict[MetricName, Metric] = {}

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def tick_interval_seconds(self) -> float:
        return self._tick_interval

    def timed(self, name: MetricName | str, *, track_min: bool = False) -> TimedMetric:
        """Return the timed metric called ``name``, creating it when missing."""
        return self._get_or_create(
            name,
            TimedMetric,
            lambda resolved: TimedMetric(
                resolved,
                clock=self._clock,
                track_min=track_min,
                tick_interval_seconds=self._tick_interval,
            ),
        )

    def bucket_timed(
        self, name: MetricName | str, bucket_ranges: Sequence[int]
    ) -> BucketTimedMetric:
        """Return the bucketed timed metric called ``name``.

        Raises:
            MetricConfigurationError: If the metric exists with different
                ranges or the ranges are invalid.
        """
        metric = self._get_or_create(
            name,
            BucketTimedMetric,
            lambda resolved: BucketTimedMetric(
                resolved,
                bucket_ranges,
                clock=self._clock,
                tick_interval_seconds=self._tick_interval,
            ),
        )
        if metric.bucket_ranges != tuple(bucket_ranges):
            msg = (
                f"{metric.name} already registered with bucket ranges "
                f"{list(metric.bucket_ranges)}"
            )
            raise MetricConfigurationError(msg)
        return metric

    def value(self, name: MetricName | str, *, track_min: bool = False) -> ValueMetric:
        return self._get_or_create(
            name,
            ValueMetric,
            lambda resolved: ValueMetric(
                resolved, clock=self._clock, track_min=track_min
            ),
        )

    def counter(self, name: MetricName | str) -> CounterMetric:
        return self._get_or_create(
            name,
            CounterMetric,
            lambda resolved: CounterMetric(resolved, clock=self._clock),
        )

    def register(self, metric: M) -> M:
        """Add an externally built metric such as a gauge or gauge group.

        Raises:
            MetricConfigurationError: If another metric already uses the name.
        """
        with self._lock:
            existing = self._metrics.get(metric.name)
            if existing is not None and existing is not metric:
                msg = f"metric already registered under {metric.name}"
                raise MetricConfigurationError(msg)
            self._metrics[metric.name] = metric
        logger.debug(
            "Metric registered.",
            event="registry.metric_registered",
            context={"metric": str(metric.name), "kind": type(metric).__name__},
        )
        return metric

    def get(self, name: MetricName | str) -> Metric | None:
        with self._lock:
            return self._metrics.get(as_metric_name(name))

    def tick(self) -> None:
        """Tick the decayed rates of every metric that keeps them."""
        for metric in self._snapshot_metrics():
            if isinstance(metric, TickingMetric):
                metric.tick()

    def collect(self, *, include_empty: bool = False) -> CollectedMetrics:
        """Collect every metric into a snapshot, resetting their windows.

        Snapshots with nothing observed since the last pass are skipped unless
        ``include_empty``; their (empty) windows are still restarted. A metric
        whose collection raises, such as a gauge with a failing supplier, is
        logged and left out of this pass without affecting the others.
        """
        collected_at = self._clock.millis()
        snapshots: list[MetricSnapshot] = []
        for metric in sorted(self._snapshot_metrics(), key=lambda m: m.name):
            try:
                snapshot = metric.collect()
            except Exception:
                logger.warning(
                    "Metric collection failed.",
                    event="registry.collect_failed",
                    context={
                        "metric": str(metric.name),
                        "kind": type(metric).__name__,
                    },
                    exc_info=True,
                )
                continue
            if include_empty or not snapshot.is_empty():
                snapshots.append(snapshot)
        return CollectedMetrics(snapshots=tuple(snapshots), collected_at=collected_at)

    def clear(self) -> None:
        """Reset every registered metric."""
        for metric in self._snapshot_metrics():
            metric.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)

    def __iter__(self) -> Iterator[Metric]:
        return iter(self._snapshot_metrics())

    def _snapshot_metrics(self) -> tuple[Metric, ...]:
        with self._lock:
            return tuple(self._metrics.values())

    def _get_or_create(
        self,
        name: MetricName | str,
        kind: type[M],
        factory: Callable[[MetricName], M],
    ) -> M:
        resolved = as_metric_name(name)
        with self._lock:
            existing = self._metrics.get(resolved)
            if existing is None:
                created = factory(resolved)
                self._metrics[resolved] = created
            elif isinstance(existing, kind):
                return existing
            else:
                msg = (
                    f"{resolved} is registered as {type(existing).__name__}, "
                    f"not {kind.__name__}"
                )
                raise MetricConfigurationError(msg)
        logger.debug(
            "Metric created.",
            event="registry.metric_created",
            context={"metric": str(resolved), "kind": kind.__name__},
        )
        return created


__all__ = ["CollectedMetrics", "MetricRegistry"]
