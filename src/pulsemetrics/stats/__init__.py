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

"""Concurrency-safe accumulators behind every metric.

- :class:`DecayedRateMeter`: 10s/1m/5m exponentially decayed rates
- :class:`ValueAccumulator`: count, sum, max and min per collection window
- :class:`CounterAccumulator`: monotonic count per collection window
- :class:`LoadCollector`: event and load rates plus running totals
"""

from __future__ import annotations

from ._counter import CounterAccumulator, CounterStatistics
from ._load import EMPTY_RATE_EPSILON, LoadCollector
from ._moving_average import (
    FIVE_MINUTES,
    ONE_MINUTE,
    TEN_SECONDS,
    TICK_INTERVAL_SECONDS,
    WINDOWS,
    DecayedRateMeter,
    MovingAverages,
    decay_alpha,
)
from ._value import ValueAccumulator, ValueStatistics

__all__ = [
    "EMPTY_RATE_EPSILON",
    "FIVE_MINUTES",
    "ONE_MINUTE",
    "TEN_SECONDS",
    "TICK_INTERVAL_SECONDS",
    "WINDOWS",
    "CounterAccumulator",
    "CounterStatistics",
    "DecayedRateMeter",
    "LoadCollector",
    "MovingAverages",
    "ValueAccumulator",
    "ValueStatistics",
    "decay_alpha",
]
