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

from __future__ import annotations

import pytest

from pulsemetrics import FakeClock, MetricRegistry
from pulsemetrics.report import ReportHeader

pytest_plugins = ["tests.plugins.threadstress"]


@pytest.fixture
def fake_clock() -> FakeClock:
    """Return a controllable clock starting at 2024-01-01T00:00:00Z."""

    return FakeClock()


@pytest.fixture
def registry(fake_clock: FakeClock) -> MetricRegistry:
    """Return an isolated registry driven by ``fake_clock``."""

    return MetricRegistry(clock=fake_clock)


@pytest.fixture
def header() -> ReportHeader:
    return ReportHeader(app="orders", env="test", server="web-1")
