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

"""Periodic ticking, collection and reporting of a metric registry."""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from types import TracebackType
from typing import TYPE_CHECKING, Self

from .._logging import StructuredLogger, get_logger
from ..errors import ConfigError, MetricConfigurationError
from ._json import DEFAULT_DECIMAL_PLACES, JsonReportWriter, ReportHeader
from ._sinks import DebugSink, FileSink, ReportSink

if TYPE_CHECKING:
    from .._registry import MetricRegistry
    from ..config import ReporterConfig

logger: StructuredLogger = get_logger(__name__, context={"component": "reporter"})

_DEFAULT_REPORT_INTERVAL_SECONDS = 60.0


class MetricsReporter:
    """Drives a :class:`~pulsemetrics.MetricRegistry` on two cadences.

    The tick loop calls :meth:`MetricRegistry.tick` every
    ``tick_interval_seconds``; the report loop collects, serializes and sends
    one document every ``report_interval_seconds``. Both loops run in daemon
    threads and stop on :meth:`stop`.

    Collection restarts every metric window before any sink is called, so a
    failing sink loses that report rather than delaying the next one.

    The tick cadence is the registry's ``tick_interval_seconds``; passing a
    different ``tick_interval_seconds`` raises
    :class:`~pulsemetrics.MetricConfigurationError`.

    Example::

        registry = MetricRegistry()
        reporter = MetricsReporter(
            registry,
            ReportHeader(app="orders", env="prod", server="web-1"),
            [FileSink("/var/log/orders/metrics.jsonl")],
        )
        with reporter:
            serve_forever()
    """

    def __init__(
        self,
        registry: MetricRegistry,
        header: ReportHeader,
        sinks: Sequence[ReportSink] = (),
        *,
        tick_interval_seconds: float | None = None,
        report_interval_seconds: float = _DEFAULT_REPORT_INTERVAL_SECONDS,
        decimal_places: int = DEFAULT_DECIMAL_PLACES,
        include_empty: bool = False,
    ) -> None:
        super().__init__()
        if tick_interval_seconds is None:
            tick_interval_seconds = registry.tick_interval_seconds
        elif tick_interval_seconds != registry.tick_interval_seconds:
            msg = (
                f"tick interval {tick_interval_seconds!r} does not match the "
                f"registry tick interval {registry.tick_interval_seconds!r}"
            )
            raise MetricConfigurationError(msg)
        self._registry = registry
        self._header = header
        self._sinks = list(sinks) if sinks else [DebugSink()]
        self._tick_interval = tick_interval_seconds
        self._report_interval = report_interval_seconds
        self._decimal_places = decimal_places
        self._include_empty = include_empty
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        registry: MetricRegistry,
        config: ReporterConfig,
        sinks: Sequence[ReportSink] | None = None,
    ) -> MetricsReporter:
        """Build a reporter from resolved configuration.

        Without explicit ``sinks`` a :class:`FileSink` is used when
        ``config.output_path`` is set, otherwise a :class:`DebugSink`.

        Raises:
            ConfigError: If ``config.tick_interval_seconds`` differs from the
                registry tick interval. Build the registry with
                ``MetricRegistry(tick_interval_seconds=config.tick_interval_seconds)``.
        """
        if config.tick_interval_seconds != registry.tick_interval_seconds:
            msg = (
                f"tick_interval_seconds={config.tick_interval_seconds!r} does not "
                f"match the registry tick interval "
                f"{registry.tick_interval_seconds!r}"
            )
            raise ConfigError(msg)
        if sinks is None:
            if config.output_path is not None:
                sinks = [FileSink(config.output_path)]
            else:
                sinks = [DebugSink()]
        return cls(
            registry,
            config.header(),
            sinks,
            tick_interval_seconds=config.tick_interval_seconds,
            report_interval_seconds=config.report_interval_seconds,
            decimal_places=config.decimal_places,
            include_empty=config.include_empty,
        )

    @property
    def header(self) -> ReportHeader:
        return self._header

    @property
    def sinks(self) -> tuple[ReportSink, ...]:
        return tuple(self._sinks)

    @property
    def running(self) -> bool:
        with self._lock:
            return any(thread.is_alive() for thread in self._threads)

    def tick(self) -> None:
        self._registry.tick()

    def report_once(self) -> str | None:
        """Collect the registry and send one document to every sink.

        Returns:
            The document sent, or None when there was nothing to report.

        Raises:
            Exception: Whatever a sink raises, unchanged. Sinks after the
                failing one do not receive the document.
        """
        collected = self._registry.collect(include_empty=self._include_empty)
        if not collected.snapshots:
            logger.debug(
                "Nothing to report.", event="reporter.report_skipped", context={}
            )
            return None

        writer = JsonReportWriter(
            clock=self._registry.clock, decimal_places=self._decimal_places
        )
        document = writer.build_json(self._header, collected.snapshots)
        for sink in self._sinks:
            sink.send(document)
        logger.debug(
            "Report sent.",
            event="reporter.report_sent",
            context={"metrics": len(collected), "sinks": len(self._sinks)},
        )
        return document

    def start(self) -> None:
        """Start the tick and report loops.

        Raises:
            RuntimeError: If the reporter is already running.
        """
        with self._lock:
            if any(thread.is_alive() for thread in self._threads):
                msg = "Reporter already started"
                raise RuntimeError(msg)
            self._stop_event.clear()
            self._threads = [
                threading.Thread(
                    target=self._run,
                    args=(self._tick_interval, self.tick, "reporter.tick_failed"),
                    name="pulsemetrics-tick",
                    daemon=True,
                ),
                threading.Thread(
                    target=self._run,
                    args=(
                        self._report_interval,
                        self.report_once,
                        "reporter.report_failed",
                    ),
                    name="pulsemetrics-report",
                    daemon=True,
                ),
            ]
            for thread in self._threads:
                thread.start()
        logger.info(
            "Metrics reporter started.",
            event="reporter.started",
            context={
                "tick_interval_seconds": self._tick_interval,
                "report_interval_seconds": self._report_interval,
            },
        )

    def stop(self, timeout: float = 5.0) -> bool:
        """Signal both loops to stop and wait for them.

        Returns:
            True if both threads finished within ``timeout``.
        """
        self._stop_event.set()
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout=timeout)
        stopped = not any(thread.is_alive() for thread in threads)
        if stopped:
            for sink in self._sinks:
                sink.close()
        logger.info(
            "Metrics reporter stopped.",
            event="reporter.stopped",
            context={"clean": stopped},
        )
        return stopped

    def __enter__(self) -> Self:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        _ = self.stop()

    def _run(self, interval: float, action: Callable[[], object], event: str) -> None:
        while not self._stop_event.wait(timeout=interval):
            try:
                _ = action()
            except Exception:
                logger.warning(
                    "Metrics reporter cycle failed.",
                    event=event,
                    context={"app": self._header.app},
                    exc_info=True,
                )


__all__ = ["MetricsReporter"]
