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

"""Destinations for serialized report documents."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Protocol

from .._logging import StructuredLogger, get_logger

logger: StructuredLogger = get_logger(__name__, context={"component": "report_sink"})


class ReportSink(Protocol):
    """Protocol for report document delivery.

    ``send`` receives one complete JSON document. Failures are raised to the
    caller; sinks do not retry.
    """

    def send(self, document: str) -> None:
        """Deliver one report document."""
        ...

    def close(self) -> None:
        """Release any resources held by the sink."""
        ...


class DebugSink:
    """Sink that logs every document at DEBUG level.

    Args:
        log: Logger to use. Defaults to the module logger.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        super().__init__()
        self._logger = logger if log is None else StructuredLogger(log)

    def send(self, document: str) -> None:
        self._logger.debug(
            "%s",
            document,
            event="report.sink.debug",
            context={"size": len(document)},
        )

    def close(self) -> None:
        pass


class FileSink:
    """Sink that writes one document per line to ``path``.

    Parent directories are created on first use. Write errors propagate.

    Args:
        path: Target file.
        append: Append to an existing file instead of truncating it on the
            first write.
    """

    def __init__(self, path: str | Path, *, append: bool = True) -> None:
        super().__init__()
        self._path = Path(path).expanduser()
        self._append = append
        self._lock = threading.Lock()
        self._written = False

    @property
    def path(self) -> Path:
        return self._path

    def send(self, document: str) -> None:
        line = document.replace("\n", "") + "\n"
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            mode = "a" if self._append or self._written else "w"
            with self._path.open(mode, encoding="utf-8") as handle:
                _ = handle.write(line)
            self._written = True
        logger.debug(
            "Report document written.",
            event="report.sink.file_written",
            context={"path": str(self._path), "size": len(line)},
        )

    def close(self) -> None:
        pass


class MemorySink:
    """Sink keeping every document in memory, oldest first."""

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.Lock()
        self._documents: list[str] = []

    @property
    def documents(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._documents)

    def send(self, document: str) -> None:
        with self._lock:
            self._documents.append(document)

    def clear(self) -> None:
        with self._lock:
            self._documents.clear()

    def close(self) -> None:
        pass


__all__ = [
    "DebugSink",
    "FileSink",
    "MemorySink",
    "ReportSink",
]
