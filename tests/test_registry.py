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

"""Tests for MetricRegistry."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from pulsemetrics import (
    CounterMetric,
    CounterMetricSnapshot,
    FakeClock,
    GaugeDoubleMetric,
    MetricConfigurationError,
    MetricName,
    MetricRegistry,
    MetricSnapshot,
    TimedMetricSnapshot,
)
from pulsemetrics.stats import CounterStatistics


class TestMetricRegistry:
    def test_get_or_create_returns_same_instance(
        self, registry: MetricRegistry
    ) -> None:
        first = registry.timed("web.orders.create")
        second = registry.timed(MetricName.parse("web.orders.create"))
        assert first is second
        assert len(registry) == 1

    def test_kind_mismatch_raises(self, registry: MetricRegistry) -> None:
        registry.timed("web.orders.create")
        with pytest.raises(MetricConfigurationError, match="TimedMetric"):
            registry.counter("web.orders.create")

    def test_bucket_ranges_must_match(self, registry: MetricRegistry) -> None:
        metric = registry.bucket_timed("web.latency", [10, 50])
        assert registry.bucket_timed("web.latency", (10, 50)) is metric
        with pytest.raises(MetricConfigurationError):
            registry.bucket_timed("web.latency", [10, 100])

    def test_register_external_metric(self, registry: MetricRegistry) -> None:
        gauge = GaugeDoubleMetric("jvm.heap", lambda: 1.0)
        assert registry.register(gauge) is gauge
        assert registry.register(gauge) is gauge
        assert registry.get("jvm.heap") is gauge

        with pytest.raises(MetricConfigurationError):
            registry.register(GaugeDoubleMetric("jvm.heap", lambda: 2.0))

    def test_metrics_share_registry_clock(
        self, registry: MetricRegistry, fake_clock: FakeClock
    ) -> None:
        registry.counter("web.hits").increment()
        fake_clock.advance(2)
        collected = registry.collect()
        assert collected.collected_at == fake_clock.millis()
        assert registry.clock is fake_clock

    def test_collect_skips_empty_metrics_and_sorts(
        self, registry: MetricRegistry
    ) -> None:
        registry.timed("web.orders.create").add_success(4)
        registry.counter("app.errors").increment()
        registry.value("web.orders.items")

        collected = registry.collect()

        assert [s.name.simple_name for s in collected] == [
            "app.errors",
            "web.orders.create",
        ]
        assert isinstance(collected.snapshots[0], CounterMetricSnapshot)
        assert isinstance(collected.snapshots[1], TimedMetricSnapshot)
        assert len(registry.collect()) == 0

    def test_collect_include_empty(self, registry: MetricRegistry) -> None:
        registry.value("web.orders.items")
        assert len(registry.collect(include_empty=True)) == 1

    def test_emptiness_is_decided_by_the_collected_snapshot(
        self, registry: MetricRegistry, fake_clock: FakeClock
    ) -> None:
        # A stale emptiness check must not drop a write it raced with.
        counter = registry.register(_StaleCounter("app.errors", clock=fake_clock))
        counter.increment()

        reported = [
            snapshot.statistics.count
            for _ in range(2)
            for snapshot in registry.collect()
            if isinstance(snapshot, CounterMetricSnapshot)
        ]

        assert sum(reported) == 1

    def test_failing_gauge_does_not_drop_other_snapshots(
        self, registry: MetricRegistry, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.WARNING, logger="pulsemetrics._registry")
        registry.counter("app.errors").increment(2)
        registry.register(GaugeDoubleMetric("app.broken", _failing_supplier))
        registry.register(GaugeDoubleMetric("jvm.heap", lambda: 64.0))

        collected = registry.collect()

        assert [s.name.simple_name for s in collected] == ["app.errors", "jvm.heap"]
        assert _counter_stats_of(collected.snapshots) == [2]
        (record,) = [
            r
            for r in caplog.records
            if getattr(r, "event", None) == "registry.collect_failed"
        ]
        assert record.levelno == logging.WARNING
        assert record.exc_info is not None
        assert getattr(record, "context", {})["metric"] == "app.broken"

    def test_tick_interval_reaches_timed_metrics(self, fake_clock: FakeClock) -> None:
        registry = MetricRegistry(clock=fake_clock, tick_interval_seconds=10)
        timed = registry.timed("web.orders.create")
        bucketed = registry.bucket_timed("web.orders.latency", [10])

        assert registry.tick_interval_seconds == 10.0
        assert timed.load.event_meter.tick_interval_seconds == 10.0
        assert all(
            bucket.load.load_meter.tick_interval_seconds == 10.0
            for bucket in bucketed.buckets
        )

    @pytest.mark.parametrize("interval", [0, -5.0])
    def test_rejects_non_positive_tick_interval(self, interval: float) -> None:
        with pytest.raises(MetricConfigurationError):
            MetricRegistry(tick_interval_seconds=interval)

    def test_tick_only_reaches_ticking_metrics(
        self, registry: MetricRegistry
    ) -> None:
        timed = registry.timed("web.orders.create")
        registry.register(GaugeDoubleMetric("jvm.heap", lambda: 1.0))
        timed.add_success(10)

        registry.tick()

        assert timed.load.event_meter.ten_second_rate() == pytest.approx(0.2)

    def test_clear_resets_every_metric(self, registry: MetricRegistry) -> None:
        registry.counter("app.errors").increment(5)
        registry.clear()
        assert len(registry.collect()) == 0

    def test_creation_is_logged(
        self, registry: MetricRegistry, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.DEBUG, logger="pulsemetrics._registry")
        registry.counter("app.errors")

        records = [r for r in caplog.records if r.name == "pulsemetrics._registry"]
        assert [getattr(r, "event", None) for r in records] == [
            "registry.metric_created"
        ]
        assert getattr(records[0], "context", {})["metric"] == "app.errors"

    @pytest.mark.threadstress(min_workers=2, max_workers=8)
    def test_concurrent_get_or_create(
        self, registry: MetricRegistry, threadstress_workers: int
    ) -> None:
        def record(index: int) -> int:
            counter = registry.counter(f"app.worker{index % 3}")
            counter.increment()
            return id(counter)

        with ThreadPoolExecutor(max_workers=threadstress_workers) as executor:
            ids = list(executor.map(record, range(300)))

        assert len(set(ids)) == 3
        assert len(registry) == 3
        assert sum(s.count for s in _counter_stats(registry)) == 300


def _counter_stats(registry: MetricRegistry) -> list[CounterStatistics]:
    return [
        snapshot.statistics
        for snapshot in registry.collect()
        if isinstance(snapshot, CounterMetricSnapshot)
    ]


def _counter_stats_of(snapshots: tuple[MetricSnapshot, ...]) -> list[int]:
    return [
        snapshot.statistics.count
        for snapshot in snapshots
        if isinstance(snapshot, CounterMetricSnapshot)
    ]


def _failing_supplier() -> float:
    raise RuntimeError("supplier unavailable")


class _StaleCounter(CounterMetric):
    """Counter whose emptiness check was read before a concurrent write."""

    def is_empty(self) -> bool:
        return True
