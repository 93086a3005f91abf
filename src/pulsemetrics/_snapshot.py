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

"""Immutable metric snapshots produced by a collection pass."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TypeAlias

from ._name import MetricName
from .errors import MetricConfigurationError
from .stats import CounterStatistics, ValueStatistics


def validate_bucket_ranges(ranges: Sequence[int]) -> tuple[int, ...]:
    """Return ``ranges`` as a tuple of non-empty, non-decreasing upper bounds.

    Raises:
        MetricConfigurationError: If the ranges are empty or decrease.
    """
    bounds = tuple(ranges)
    if not bounds:
        msg = "bucket ranges must contain at least one upper bound"
        raise MetricConfigurationError(msg)
    for lower, upper in zip(bounds, bounds[1:], strict=False):
        if upper < lower:
            msg = f"bucket ranges must be non-decreasing (got {list(bounds)})"
            raise MetricConfigurationError(msg)
    return bounds


@dataclass(frozen=True, slots=True)
class TimedMetricSnapshot:
    """Success and error timings collected together.

    Attributes:
        name: Metric identity.
        success: Statistics of successful executions, or None for an empty
            bucket of a bucketed metric.
        error: Statistics of failed executions, or None likewise.
    """

    name: MetricName
    success: ValueStatistics | None
    error: ValueStatistics | None

    @property
    def count(self) -> int:
        success = self.success.count if self.success is not None else 0
        error = self.error.count if self.error is not None else 0
        return success + error

    def is_empty(self) -> bool:
        return self.count == 0


@dataclass(frozen=True, slots=True)
class BucketTimedMetricSnapshot:
    """Timed snapshots partitioned by duration ranges.

    Attributes:
        name: Metric identity.
        bucket_ranges: Upper bounds of all but the last bucket.
        buckets: One timed snapshot per bucket, in range order.
    """

    name: MetricName
    bucket_ranges: tuple[int, ...]
    buckets: tuple[TimedMetricSnapshot, ...]

    def __post_init__(self) -> None:
        _ = validate_bucket_ranges(self.bucket_ranges)
        if len(self.buckets) != len(self.bucket_ranges) + 1:
            msg = (
                f"{self.name} has {len(self.buckets)} buckets for "
                f"{len(self.bucket_ranges)} bucket ranges"
            )
            raise MetricConfigurationError(msg)

    @property
    def count(self) -> int:
        return sum(bucket.count for bucket in self.buckets)

    def is_empty(self) -> bool:
        return self.count == 0


@dataclass(frozen=True, slots=True)
class ValueMetricSnapshot:
    name: MetricName
    statistics: ValueStatistics

    def is_empty(self) -> bool:
        return self.statistics.is_empty()


@dataclass(frozen=True, slots=True)
class CounterMetricSnapshot:
    name: MetricName
    statistics: CounterStatistics

    def is_empty(self) -> bool:
        return self.statistics.is_empty()


@dataclass(frozen=True, slots=True)
class GaugeDoubleSnapshot:
    name: MetricName
    value: float

    def is_empty(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class GaugeDoubleGroupSnapshot:
    """Floating point gauges read together in one pass."""

    name: MetricName
    gauges: tuple[GaugeDoubleSnapshot, ...]

    def is_empty(self) -> bool:
        return not self.gauges


@dataclass(frozen=True, slots=True)
class GaugeLongSnapshot:
    name: MetricName
    value: int

    def is_empty(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class GaugeLongGroupSnapshot:
    """Integer gauges read together in one pass."""

    name: MetricName
    gauges: tuple[GaugeLongSnapshot, ...]

    def is_empty(self) -> bool:
        return not self.gauges


MetricSnapshot: TypeAlias = (
    TimedMetricSnapshot
    | BucketTimedMetricSnapshot
    | ValueMetricSnapshot
    | CounterMetricSnapshot
    | GaugeDoubleSnapshot
    | GaugeDoubleGroupSnapshot
    | GaugeLongSnapshot
    | GaugeLongGroupSnapshot
)
"""Every snapshot kind understood by the report writer."""


__all__ = [
    "BucketTimedMetricSnapshot",
    "CounterMetricSnapshot",
    "GaugeDoubleGroupSnapshot",
    "GaugeDoubleSnapshot",
    "GaugeLongGroupSnapshot",
    "GaugeLongSnapshot",
    "MetricSnapshot",
    "TimedMetricSnapshot",
    "ValueMetricSnapshot",
]
