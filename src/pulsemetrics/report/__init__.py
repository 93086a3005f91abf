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

"""Report documents, sinks and the periodic reporter."""

from __future__ import annotations

from ._json import DEFAULT_DECIMAL_PLACES, JsonReportWriter, ReportHeader, serialize
from ._reporter import MetricsReporter
from ._sinks import DebugSink, FileSink, MemorySink, ReportSink

__all__ = [
    "DEFAULT_DECIMAL_PLACES",
    "DebugSink",
    "FileSink",
    "JsonReportWriter",
    "MemorySink",
    "MetricsReporter",
    "ReportHeader",
    "ReportSink",
    "serialize",
]
