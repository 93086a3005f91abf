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

"""Tests for live metrics."""

from __future__ import annotations

import math

import pytest

from pulsemetrics import (
    BucketTimedMetric,
    BucketTimedMetricSnapshot,
    CounterMetric,
    FakeClock,
    GaugeDoubleGroup,
    GaugeDoubleMetric,
    GaugeLongGroup,
    GaugeLongMetric,
    Metric,
    MetricConfigurationError,
    MetricName,
    TickingMetric,
    TimedMetric,
    TimedMetricSnapshot,
    ValueMetric,
)


class TestTimedMetric:
    def test_success_and_error_are_separate(self, fake_clock: FakeClock) -> None:
        timed = TimedMetric("web.orders.create", clock=fake_clock)
        timed.add_success(5)
        timed.add_success(15)
        timed.add_error(40)

        snapshot = timed.collect()

        assert snapshot.name == MetricName.parse("web.orders.create")
        assert snapshot.success is not None
        assert snapshot.error is not None
        assert (snapshot.success.count, snapshot.success.total) == (2, 20.0)
        assert (snapshot.error.count, snapshot.error.max) == (1, 40.0)
        assert snapshot.count == 3
        assert timed.is_empty()

    def test_observations_feed_load_collector(self, fake_clock: FakeClock) -> None:
        timed = TimedMetric("web.orders.create", clock=fake_clock)
        timed.add_success(120)
        timed.add_error(30)
        timed.tick()

        assert timed.load.total_count == 2
        assert timed.load.total_load == 150
        assert not timed.is_idle(10)

    def test_non_finite_durations_are_counted_without_load(
        self, fake_clock: FakeClock
    ) -> None:
        timed = TimedMetric("web.orders.create", clock=fake_clock)
        timed.add_success(math.nan)
        timed.add_error(math.inf)
        timed.add_error(-math.inf)

        snapshot = timed.collect()

        assert snapshot.success is not None and snapshot.success.count == 1
        assert snapshot.error is not None and snapshot.error.count == 2
        assert timed.load.total_count == 3
        assert timed.load.total_load == 0

    def test_fractional_durations_round_into_load(
        self, fake_clock: FakeClock
    ) -> None:
        timed = TimedMetric("web.orders.create", clock=fake_clock)
        timed.add_success(0.75)
        timed.add_success(2.4)

        assert timed.load.total_load == 3

    def test_tick_interval_reaches_load_meters(self, fake_clock: FakeClock) -> None:
        timed = TimedMetric(
            "web.orders.create", clock=fake_clock, tick_interval_seconds=10
        )
        timed.add_success(20)
        fake_clock.advance(10)
        timed.tick()

        assert timed.load.event_meter.tick_interval_seconds == 10.0
        assert timed.load.load_meter.tick_interval_seconds == 10.0
        assert timed.load.event_moving_averages().ten_second == 0.1

    def test_time_records_elapsed_milliseconds(self, fake_clock: FakeClock) -> None:
        timed = TimedMetric("web.orders.create", clock=fake_clock)

        with timed.time():
            fake_clock.advance(0.25)

        success = timed.collect().success
        assert success is not None
        assert success.total == 250.0

    def test_time_records_error_and_propagates(self, fake_clock: FakeClock) -> None:
        timed = TimedMetric("web.orders.create", clock=fake_clock)

        with pytest.raises(RuntimeError, match="boom"), timed.time():
            fake_clock.advance(0.1)
            raise RuntimeError("boom")

        snapshot = timed.collect()
        assert snapshot.success is not None and snapshot.success.count == 0
        assert snapshot.error is not None and snapshot.error.total == 100.0

    def test_clear(self, fake_clock: FakeClock) -> None:
        timed = TimedMetric("web.orders.create", clock=fake_clock)
        timed.add_success(10)
        timed.clear()
        assert timed.is_empty()
        assert timed.load.total_count == 0

    def test_is_ticking_metric(self, fake_clock: FakeClock) -> None:
        timed = TimedMetric("web.orders.create", clock=fake_clock)
        assert isinstance(timed, TickingMetric)


class TestBucketTimedMetric:
    def test_observations_land_in_matching_bucket(
        self, fake_clock: FakeClock
    ) -> None:
        metric = BucketTimedMetric("web.orders.latency", [10, 50], clock=fake_clock)
        for duration in (3, 10, 11, 50, 51, 900):
            metric.add_success(duration)

        snapshot = metric.collect()

        counts = [bucket.count for bucket in snapshot.buckets]
        assert counts == [2, 2, 2]
        assert snapshot.bucket_ranges == (10, 50)
        assert snapshot.count == 6

    def test_bucket_names(self, fake_clock: FakeClock) -> None:
        metric = BucketTimedMetric("web.orders.latency", [10, 50], clock=fake_clock)
        assert [bucket.name.simple_name for bucket in metric.buckets] == [
            "web.orders.latency.0-10",
            "web.orders.latency.10-50",
            "web.orders.latency.50+",
        ]

    def test_bucket_names_without_leaf(self, fake_clock: FakeClock) -> None:
        metric = BucketTimedMetric(MetricName("db"), [5], clock=fake_clock)
        assert [bucket.name.simple_name for bucket in metric.buckets] == [
            "db.0-5",
            "db.5+",
        ]

    @pytest.mark.parametrize("ranges", [[], [50, 10]])
    def test_rejects_invalid_ranges(
        self, fake_clock: FakeClock, ranges: list[int]
    ) -> None:
        with pytest.raises(MetricConfigurationError):
            BucketTimedMetric("web.latency", ranges, clock=fake_clock)

    def test_tick_interval_reaches_every_bucket(self, fake_clock: FakeClock) -> None:
        metric = BucketTimedMetric(
            "web.latency", [10], clock=fake_clock, tick_interval_seconds=2.5
        )
        assert [
            bucket.load.event_meter.tick_interval_seconds for bucket in metric.buckets
        ] == [2.5, 2.5]

    def test_non_finite_duration_is_recorded(self, fake_clock: FakeClock) -> None:
        metric = BucketTimedMetric("web.latency", [10], clock=fake_clock)
        metric.add_success(math.nan)
        metric.add_error(math.inf)

        assert metric.collect().count == 2

    def test_time_routes_by_elapsed(self, fake_clock: FakeClock) -> None:
        metric = BucketTimedMetric("web.latency", [10, 50], clock=fake_clock)
        with metric.time():
            fake_clock.advance(0.02)

        assert [bucket.is_empty() for bucket in metric.buckets] == [
            True,
            False,
            True,
        ]
        assert not metric.is_empty()

    def test_clear_and_tick_reach_every_bucket(self, fake_clock: FakeClock) -> None:
        metric = BucketTimedMetric("web.latency", [10], clock=fake_clock)
        metric.add_error(1)
        metric.add_error(100)
        metric.tick()
        assert not metric.buckets[0].is_idle(10)
        assert not metric.buckets[1].is_idle(10)

        metric.clear()

        assert metric.is_empty()
        assert all(bucket.is_idle(10) for bucket in metric.buckets)


class TestValueAndCounterMetrics:
    def test_value_metric(self, fake_clock: FakeClock) -> None:
        metric = ValueMetric("web.orders.items", clock=fake_clock)
        assert metric.is_empty()
        metric.add(3)
        metric.add(9)

        snapshot = metric.collect()

        assert snapshot.statistics.count == 2
        assert snapshot.statistics.max == 9.0
        assert metric.is_empty()

    def test_counter_metric(self, fake_clock: FakeClock) -> None:
        metric = CounterMetric("web.orders.rejected", clock=fake_clock)
        metric.increment(2)
        metric.mark_event()
        assert metric.count == 3

        snapshot = metric.collect()

        assert snapshot.statistics.count == 3
        assert metric.is_empty()
        assert not isinstance(metric, TickingMetric)


class TestGauges:
    def test_gauges_read_supplier_at_collection(self) -> None:
        readings = iter([1.5, 2.5])
        gauge = GaugeDoubleMetric("jvm.heap", lambda: next(readings))

        assert gauge.collect().value == 1.5
        assert gauge.collect().value == 2.5
        assert not gauge.is_empty()

    def test_long_gauge_coerces_to_int(self) -> None:
        gauge = GaugeLongMetric("queue.depth", lambda: 7)
        snapshot = gauge.collect()
        assert snapshot.value == 7
        assert isinstance(snapshot.value, int)

    def test_groups_collect_members_in_order(self) -> None:
        doubles = GaugeDoubleGroup(
            "memory",
            [
                GaugeDoubleMetric(MetricName("memory", name="heap"), lambda: 42.5),
                GaugeDoubleMetric(MetricName("memory", name="nonheap"), lambda: 7.25),
            ],
        )
        longs = GaugeLongGroup(
            "threads", [GaugeLongMetric(MetricName("threads", name="live"), lambda: 3)]
        )

        assert [g.value for g in doubles.collect().gauges] == [42.5, 7.25]
        assert [g.value for g in longs.collect().gauges] == [3]
        assert isinstance(doubles, Metric)
        assert GaugeLongGroup("empty", []).is_empty()


class TestBucketTimedMetricSnapshot:
    @staticmethod
    def _bucket(label: str) -> TimedMetricSnapshot:
        return TimedMetricSnapshot(MetricName("web", name=label), None, None)

    def test_accepts_one_more_bucket_than_ranges(self) -> None:
        snapshot = BucketTimedMetricSnapshot(
            MetricName("web", name="latency"),
            (10, 50),
            (self._bucket("a"), self._bucket("b"), self._bucket("c")),
        )
        assert snapshot.count == 0
        assert snapshot.is_empty()

    @pytest.mark.parametrize(
        ("ranges", "bucket_count"),
        [((), 1), ((50, 10), 3), ((10, 50), 2), ((10,), 3)],
    )
    def test_rejects_inconsistent_buckets(
        self, ranges: tuple[int, ...], bucket_count: int
    ) -> None:
        buckets = tuple(self._bucket(str(i)) for i in range(bucket_count))
        with pytest.raises(MetricConfigurationError):
            BucketTimedMetricSnapshot(
                MetricName("web", name="latency"), ranges, buckets
            )
