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

"""JSON report documents built from metric snapshots.

A report is a single JSON object::

    {"time":1700000000000,"app":"orders","env":"prod","server":"web-1",
     "metrics":[
    {"type":"timed","name":"web.orders.create","n":{"count":2,"avg":10.00,...},"e":{"count":0}},
    {"type":"counter","name":"web.orders.rejected","count":3,"dur":60}
    ]}

Real-valued fields are written with a fixed number of decimal places; counts
and durations are bare integers. Summary objects (``"n"`` for successes,
``"e"`` for errors) only carry ``avg``, ``max``, ``sum`` and ``dur`` when the
count is positive.
"""

from __future__ import annotations

import io
import json
import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TextIO, assert_never

from .._snapshot import (
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
from ..clock import SYSTEM_CLOCK, MillisClock
from ..stats import ValueStatistics

DEFAULT_DECIMAL_PLACES = 2


@dataclass(frozen=True, slots=True)
class ReportHeader:
    """Identifies the process a report came from.

    Attributes:
        app: Application name.
        env: Deployment environment, e.g. ``"prod"``.
        server: Host or instance name.
    """

    app: str
    env: str
    server: str


class JsonReportWriter:
    """Writes one report document per :meth:`write` call.

    Each snapshot kind has its own emission method; :meth:`_write_metric`
    selects it by matching on the snapshot type. The current time is read
    once per document and used for ``"time"`` and every ``"dur"`` field.

    A writer holds per-document state while writing and must not be shared
    between concurrent reports.

    Args:
        clock: Source of the report time.
        decimal_places: Precision of real-valued fields.
    """

    def __init__(
        self,
        *,
        clock: MillisClock = SYSTEM_CLOCK,
        decimal_places: int = DEFAULT_DECIMAL_PLACES,
    ) -> None:
        super().__init__()
        self._clock = clock
        self._decimal_places = decimal_places
        self._out: TextIO | None = None
        self._now = 0

    def build_json(
        self, header: ReportHeader, snapshots: Iterable[MetricSnapshot]
    ) -> str:
        """Return the report document as text."""
        buffer = io.StringIO()
        self.write(header, snapshots, buffer)
        return buffer.getvalue()

    def write(
        self,
        header: ReportHeader,
        snapshots: Iterable[MetricSnapshot],
        out: TextIO,
    ) -> None:
        """Write the report document to ``out``.

        Errors raised by ``out`` propagate unchanged; the partially written
        document is not retried.
        """
        self._out = out
        self._now = self._clock.millis()
        try:
            self._emit("{")
            self._write_key("time")
            self._emit(f"{self._now},")
            self._write_key_string("app", header.app)
            self._emit(",")
            self._write_key_string("env", header.env)
            self._emit(",")
            self._write_key_string("server", header.server)
            self._emit(",")
            self._write_key("metrics")
            self._emit("[\n")
            for index, snapshot in enumerate(snapshots):
                if index > 0:
                    self._emit(",\n")
                self._write_metric(snapshot)
            self._emit("\n]}")
        finally:
            self._out = None

    def _write_metric(self, snapshot: MetricSnapshot) -> None:
        match snapshot:
            case TimedMetricSnapshot():
                self._write_timed(snapshot)
            case BucketTimedMetricSnapshot():
                self._write_bucket_timed(snapshot)
            case ValueMetricSnapshot():
                self._write_value(snapshot)
            case CounterMetricSnapshot():
                self._write_counter(snapshot)
            case GaugeDoubleSnapshot():
                self._write_gauge_double(snapshot)
            case GaugeDoubleGroupSnapshot():
                self._write_gauge_double_group(snapshot)
            case GaugeLongSnapshot():
                self._write_gauge_long(snapshot)
            case GaugeLongGroupSnapshot():
                self._write_gauge_long_group(snapshot)
            case _ as unreachable:  # pragma: no cover - exhaustiveness sentinel
                assert_never(unreachable)

    def _write_timed(self, snapshot: TimedMetricSnapshot) -> None:
        self._write_metric_start("timed", snapshot.name.simple_name)
        self._write_summary("n", snapshot.success)
        self._emit(",")
        self._write_summary("e", snapshot.error)
        self._emit("}")

    def _write_bucket_timed(self, snapshot: BucketTimedMetricSnapshot) -> None:
        self._write_metric_start("bucketTimed", snapshot.name.simple_name)
        ranges = ",".join(str(bound) for bound in snapshot.bucket_ranges)
        self._write_key_string("bucketRanges", ranges)
        self._emit(",")
        self._write_key("buckets")
        self._emit("[")
        for index, bucket in enumerate(snapshot.buckets):
            if index > 0:
                self._emit(",")
            self._write_timed(bucket)
        self._emit("]}")

    def _write_value(self, snapshot: ValueMetricSnapshot) -> None:
        self._write_metric_start("value", snapshot.name.simple_name)
        self._write_summary("n", snapshot.statistics)
        self._emit("}")

    def _write_counter(self, snapshot: CounterMetricSnapshot) -> None:
        statistics = snapshot.statistics
        self._write_metric_start("counter", snapshot.name.simple_name)
        self._write_key_number("count", str(statistics.count))
        self._emit(",")
        self._write_key_number("dur", str(self._duration(statistics.start_time)))
        self._emit("}")

    def _write_gauge_double(self, snapshot: GaugeDoubleSnapshot) -> None:
        self._write_metric_start("gauge", snapshot.name.simple_name)
        self._write_key_number("value", self._format(snapshot.value))
        self._emit("}")

    def _write_gauge_double_group(self, snapshot: GaugeDoubleGroupSnapshot) -> None:
        self._write_metric_start("gaugeGroup", snapshot.name.simple_name)
        self._write_key("group")
        self._emit("[")
        for index, gauge in enumerate(snapshot.gauges):
            if index > 0:
                self._emit(",")
            self._emit("{")
            self._write_key_number(
                gauge.name.name or gauge.name.simple_name, self._format(gauge.value)
            )
            self._emit("}")
        self._emit("]}")

    def _write_gauge_long(self, snapshot: GaugeLongSnapshot) -> None:
        self._write_metric_start("gaugeCounter", snapshot.name.simple_name)
        self._write_key_number("value", str(snapshot.value))
        self._emit("}")

    def _write_gauge_long_group(self, snapshot: GaugeLongGroupSnapshot) -> None:
        self._write_metric_start("gaugeCounterGroup", snapshot.name.simple_name)
        self._write_key("group")
        self._emit("[")
        for index, gauge in enumerate(snapshot.gauges):
            if index > 0:
                self._emit(",")
            self._emit("{")
            self._write_key_number(
                gauge.name.name or gauge.name.simple_name, str(gauge.value)
            )
            self._emit("}")
        self._emit("]}")

    def _write_summary(self, key: str, statistics: ValueStatistics | None) -> None:
        # statistics is None for an empty bucket of a bucketed metric
        count = 0 if statistics is None else statistics.count
        self._write_key(key)
        self._emit("{")
        self._write_key_number("count", str(count))
        if statistics is not None and count > 0:
            self._emit(",")
            self._write_key_number("avg", self._format(statistics.mean))
            self._emit(",")
            self._write_key_number("max", self._format(statistics.max))
            self._emit(",")
            self._write_key_number("sum", self._format(statistics.total))
            self._emit(",")
            self._write_key_number("dur", str(self._duration(statistics.start_time)))
        self._emit("}")

    def _write_metric_start(self, kind: str, name: str) -> None:
        self._emit("{")
        self._write_key_string("type", kind)
        self._emit(",")
        self._write_key_string("name", name)
        self._emit(",")

    def _write_key(self, key: str) -> None:
        self._emit(json.dumps(key))
        self._emit(":")

    def _write_key_string(self, key: str, value: str) -> None:
        self._write_key(key)
        self._emit(json.dumps(value))

    def _write_key_number(self, key: str, number: str) -> None:
        self._write_key(key)
        self._emit(number)

    def _format(self, value: float) -> str:
        if not math.isfinite(value):
            return "null"
        return f"{value:.{self._decimal_places}f}"

    def _duration(self, start_time: int) -> int:
        # Half-up rounding of whole seconds.
        return math.floor((self._now - start_time) / 1000 + 0.5)

    def _emit(self, text: str) -> None:
        if self._out is None:  # pragma: no cover - only reachable via misuse
            raise RuntimeError("JsonReportWriter is not writing a document")
        _ = self._out.write(text)


def serialize(
    header: ReportHeader,
    snapshots: Iterable[MetricSnapshot],
    *,
    clock: MillisClock = SYSTEM_CLOCK,
    decimal_places: int = DEFAULT_DECIMAL_PLACES,
) -> str:
    """Return one report document using a fresh :class:`JsonReportWriter`."""
    writer = JsonReportWriter(clock=clock, decimal_places=decimal_places)
    return writer.build_json(header, snapshots)


__all__ = [
    "DEFAULT_DECIMAL_PLACES",
    "JsonReportWriter",
    "ReportHeader",
    "serialize",
]
