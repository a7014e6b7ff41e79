"""Tests for the global event cap and per-file sampling."""

import pytest
from collections import namedtuple
from datetime import datetime, timedelta, timezone
from k8s_log_analyzer import EventBudgeter, ErrorStreamParser

Event = namedtuple("Event", ["timestamp", "source", "index"])

BASE = datetime(2026, 2, 11, 14, 0, tzinfo=timezone.utc)


def make_events(source, count):
    return [Event(BASE + timedelta(seconds=i), source, i) for i in range(count)]


class TestAllocate:
    """Test cases for EventBudgeter.allocate."""

    def test_under_cap_keeps_everything(self):
        assert EventBudgeter(max_events=100).allocate([10, 20, 30]) == [10, 20, 30]

    def test_equal_files_share_evenly(self):
        """Five 50k files under a 200k cap get 40k each."""
        assert EventBudgeter(max_events=200000).allocate([50000] * 5) == [40000] * 5

    def test_small_file_kept_whole(self):
        """A file under its floor keeps every event."""
        allocations = EventBudgeter(max_events=10000, min_per_file=5000).allocate([100, 50000])
        assert allocations[0] == 100
        assert sum(allocations) <= 10000

    @pytest.mark.parametrize(
        "counts,cap",
        [([100000, 1000, 1000], 20000), ([7, 3, 90], 10), ([5, 5, 5, 5], 3), ([123456, 654321], 200000)],
    )
    def test_never_exceeds_cap(self, counts, cap):
        allocations = EventBudgeter(max_events=cap).allocate(counts)
        assert sum(allocations) <= cap
        assert all(0 <= a <= c for a, c in zip(allocations, counts))

    def test_floor_respected(self):
        """Each file keeps at least min(count, cap // files) when that is under the floor."""
        counts = [100000, 2000, 40000]
        cap = 9000
        allocations = EventBudgeter(max_events=cap).allocate(counts)
        for count, alloc in zip(counts, allocations):
            assert alloc >= min(count, cap // len(counts))


class TestSample:
    """Test cases for EventBudgeter.sample."""

    def test_keeps_first_and_last(self):
        events = list(range(1000))
        sampled = EventBudgeter.sample(events, 10)
        assert len(sampled) == 10
        assert sampled[0] == 0
        assert sampled[-1] == 999

    def test_uniform_stride(self):
        assert EventBudgeter.sample(list(range(10)), 5) == [0, 2, 4, 6, 9]

    def test_budget_covers_all(self):
        assert EventBudgeter.sample([1, 2, 3], 5) == [1, 2, 3]

    def test_zero_budget(self):
        assert EventBudgeter.sample([1, 2, 3], 0) == []


class TestMerge:
    """Test cases for EventBudgeter.merge."""

    def test_five_large_files(self):
        """250k events across five files cap at 200k with 50k dropped."""
        per_file = [make_events(f"f{n}", 50000) for n in range(5)]

        merged, dropped = EventBudgeter(max_events=200000).merge(per_file)

        assert len(merged) == 200000
        assert dropped == 50000
        for n in range(5):
            kept = [e for e in merged if e.source == f"f{n}"]
            assert len(kept) == 40000
            assert kept[0].index == 0
            assert kept[-1].index == 49999

    def test_merged_sorted_by_time(self):
        per_file = [make_events("a", 5), make_events("b", 5)]
        merged, dropped = EventBudgeter().merge(per_file)

        assert dropped == 0
        assert [e.timestamp for e in merged] == sorted(e.timestamp for e in merged)

    def test_undated_events_first(self):
        per_file = [[Event(BASE, "a", 0), Event(None, "a", 1)]]
        merged, _ = EventBudgeter().merge(per_file)
        assert merged[0].timestamp is None


class TestParserCap:
    """The cap is applied across files by ErrorStreamParser.parse_files."""

    def test_cap_reported_in_stats(self, tmp_path):
        paths = []
        for n in range(3):
            path = tmp_path / f"errors_2026021{n}_140000.log"
            path.write_text(
                "".join(f"[api-1-2] 2026-02-1{n}T14:{i // 60:02d}:{i % 60:02d}Z event {i}\n" for i in range(100))
            )
            paths.append(str(path))

        events, stats = ErrorStreamParser().parse_files(paths, max_events=60)

        assert len(events) == 60
        assert stats["events_parsed"] == 300
        assert stats["events_dropped"] == 240
        assert stats["total_events"] == 60
        assert stats["total_lines"] == 300
