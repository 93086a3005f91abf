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

"""Tests for ValueAccumulator."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest
from hypothesis import given, strategies as st

from pulsemetrics import FakeClock
from pulsemetrics.stats import ValueAccumulator, ValueStatistics


class TestValueStatistics:
    def test_empty_statistics(self) -> None:
        stats = ValueStatistics()
        assert stats.is_empty()
        assert stats.mean == 0.0

    def test_mean(self) -> None:
        assert ValueStatistics(count=4, total=10.0, max=7.0).mean == 2.5


class TestValueAccumulator:
    def test_collect_returns_window_and_resets(self, fake_clock: FakeClock) -> None:
        accumulator = ValueAccumulator(clock=fake_clock)
        accumulator.add(5)
        accumulator.add(15)

        stats = accumulator.collect()

        assert stats.count == 2
        assert stats.total == 20.0
        assert stats.max == 15.0
        assert stats.mean == 10.0
        assert stats.min is None
        assert accumulator.collect().count == 0

    def test_window_start_times_follow_collections(
        self, fake_clock: FakeClock
    ) -> None:
        created = fake_clock.millis()
        accumulator = ValueAccumulator(clock=fake_clock)
        accumulator.add(1)
        fake_clock.advance(3)

        first = accumulator.collect()
        accumulator.add(1)
        second = accumulator.collect()

        assert first.start_time == created
        assert second.start_time == created + 3000

    def test_first_value_sets_max_even_when_negative(
        self, fake_clock: FakeClock
    ) -> None:
        accumulator = ValueAccumulator(clock=fake_clock)
        accumulator.add(-4)
        accumulator.add(-9)
        assert accumulator.collect().max == -4.0

    def test_tracks_min_when_enabled(self, fake_clock: FakeClock) -> None:
        accumulator = ValueAccumulator(track_min=True, clock=fake_clock)
        for value in (7, 3, 11):
            accumulator.add(value)

        stats = accumulator.collect()

        assert accumulator.track_min is True
        assert stats.min == 3.0
        assert stats.max == 11.0

    def test_peek_does_not_reset(self, fake_clock: FakeClock) -> None:
        accumulator = ValueAccumulator(clock=fake_clock)
        accumulator.add(2)

        assert accumulator.peek().count == 1
        assert accumulator.count == 1

    def test_reset_discards_window(self, fake_clock: FakeClock) -> None:
        accumulator = ValueAccumulator(clock=fake_clock)
        accumulator.add(2)
        accumulator.reset()
        assert accumulator.peek().is_empty()

    @pytest.mark.threadstress(min_workers=2, max_workers=8)
    def test_concurrent_adds_and_collects_lose_nothing(
        self, fake_clock: FakeClock, threadstress_workers: int
    ) -> None:
        accumulator = ValueAccumulator(clock=fake_clock)
        per_worker = 1_000
        collected: list[ValueStatistics] = []

        def writer() -> None:
            for _ in range(per_worker):
                accumulator.add(2)

        def collector() -> None:
            for _ in range(50):
                collected.append(accumulator.collect())

        with ThreadPoolExecutor(max_workers=threadstress_workers + 1) as executor:
            futures = [executor.submit(writer) for _ in range(threadstress_workers)]
            futures.append(executor.submit(collector))
            for future in futures:
                future.result()
        collected.append(accumulator.collect())

        expected = threadstress_workers * per_worker
        assert sum(stats.count for stats in collected) == expected
        assert sum(stats.total for stats in collected) == 2.0 * expected
        for stats in collected:
            assert stats.total == 2.0 * stats.count
            assert stats.max == (2.0 if stats.count else 0.0)


@given(st.lists(st.integers(min_value=-10**6, max_value=10**6), min_size=1))
def test_statistics_match_observed_values(values: list[int]) -> None:
    accumulator = ValueAccumulator(track_min=True, clock=FakeClock())
    for value in values:
        accumulator.add(value)

    stats = accumulator.collect()

    assert stats.count == len(values)
    assert stats.total == sum(values)
    assert stats.max == max(values)
    assert stats.min == min(values)
