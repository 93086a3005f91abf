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

"""Lightweight in-process metrics with decayed rates and JSON reports.

Application code records observations on named metrics; a background task
ticks their decayed rates, collects immutable snapshots and writes them as a
single JSON document to one or more sinks.

Quick Start::

    from pulsemetrics import MetricRegistry, MetricsReporter, load_config

    config = load_config("metrics.toml")
    registry = MetricRegistry(tick_interval_seconds=config.tick_interval_seconds)

    orders = registry.timed("web.orders.create")
    with orders.time():
        create_order()

    registry.counter("web.orders.rejected").increment()
    registry.value("web.orders.items").add(3)

    reporter = MetricsReporter.from_config(registry, config)
    reporter.start()

One-off serialization::

    from pulsemetrics.report import ReportHeader, serialize

    collected = registry.collect()
    document = serialize(ReportHeader("orders", "prod", "web-1"), collected)

Metric Types
------------

- :class:`TimedMetric`: Success and error durations
- :class:`BucketTimedMetric`: Timed metric partitioned by duration ranges
- :class:`ValueMetric`: Count, sum, max of arbitrary values
- :class:`CounterMetric`: Events per collection window
- :class:`GaugeDoubleMetric` / :class:`GaugeLongMetric`: Point-in-time reads
- :class:`GaugeDoubleGroup` / :class:`GaugeLongGroup`: Gauges read together

Statistics
----------

See :mod:`pulsemetrics.stats` for the accumulators and decayed rate meters.
"""

from __future__ import annotations

from ._logging import StructuredLogger, configure_logging, get_logger
from ._metrics import (
    BucketTimedMetric,
    CounterMetric,
    GaugeDoubleGroup,
    GaugeDoubleMetric,
    GaugeLongGroup,
    GaugeLongMetric,
    Metric,
    TickingMetric,
    TimedMetric,
    ValueMetric,
)
from ._name import MetricName
from ._registry import CollectedMetrics, MetricRegistry
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
)
from .clock import SYSTEM_CLOCK, Clock, FakeClock, SystemClock
from .config import ReporterConfig, load_config
from .errors import ConfigError, MetricConfigurationError, MetricsError
from .report import (
    DebugSink,
    FileSink,
    JsonReportWriter,
    MemorySink,
    MetricsReporter,
    ReportHeader,
    ReportSink,
    serialize,
)

__all__ = [
    "SYSTEM_CLOCK",
    "BucketTimedMetric",
    "BucketTimedMetricSnapshot",
    "Clock",
    "CollectedMetrics",
    "ConfigError",
    "CounterMetric",
    "CounterMetricSnapshot",
    "DebugSink",
    "FakeClock",
    "FileSink",
    "GaugeDoubleGroup",
    "GaugeDoubleGroupSnapshot",
    "GaugeDoubleMetric",
    "GaugeDoubleSnapshot",
    "GaugeLongGroup",
    "GaugeLongGroupSnapshot",
    "GaugeLongMetric",
    "GaugeLongSnapshot",
    "JsonReportWriter",
    "MemorySink",
    "Metric",
    "MetricConfigurationError",
    "MetricName",
    "MetricRegistry",
    "MetricSnapshot",
    "MetricsError",
    "MetricsReporter",
    "ReportHeader",
    "ReportSink",
    "ReporterConfig",
    "StructuredLogger",
    "SystemClock",
    "TickingMetric",
    "TimedMetric",
    "TimedMetricSnapshot",
    "ValueMetric",
    "ValueMetricSnapshot",
    "configure_logging",
    "get_logger",
    "load_config",
    "serialize",
]
