"""Tests for pipeline step timing."""

import pytest
from k8s_log_analyzer import ErrorStreamParser, PerformanceTracker, LogArchiveAnalyzer, ProgressTracker


class TestPerformanceTracker:
    """Test cases for PerformanceTracker class."""

    def test_record_single_timing(self):
        """Recording a single timing should work."""
        tracker = PerformanceTracker()
        tracker.record("parse_error_logs", 1.5)

        summary = tracker.get_summary()
        assert summary["parse_error_logs"] == {"calls": 1, "total": 1.5, "avg": 1.5, "min": 1.5, "max": 1.5}

    def test_record_multiple_timings_same_step(self):
        """Multiple recordings for the same step should aggregate."""
        tracker = PerformanceTracker()
        for duration in (1.0, 2.0, 3.0):
            tracker.record("parse_metrics", duration)

        stats = tracker.get_summary()["parse_metrics"]
        assert stats["calls"] == 3
        assert stats["total"] == 6.0
        assert stats["avg"] == 2.0
        assert stats["min"] == 1.0
        assert stats["max"] == 3.0

    def test_get_summary_empty_tracker(self):
        """Empty tracker should return empty summary."""
        assert PerformanceTracker().get_summary() == {}

    def test_get_slowest_sorted_by_total(self):
        """Should return slowest steps by total time."""
        tracker = PerformanceTracker()
        tracker.record("classify_errors", 1.0)
        tracker.record("parse_error_logs", 10.0)
        tracker.record("analyze_db", 5.0)
        tracker.record("parse_metrics", 8.0)

        slowest = tracker.get_slowest(limit=3)

        assert slowest == [("parse_error_logs", 10.0), ("parse_metrics", 8.0), ("analyze_db", 5.0)]

    @pytest.mark.parametrize("limit", [1, 5, 10])
    def test_get_slowest_with_limit(self, limit):
        """Limit parameter should control number of results."""
        tracker = PerformanceTracker()
        for i in range(20):
            tracker.record(f"step_{i}", float(i))

        assert len(tracker.get_slowest(limit=limit)) == limit


class TestStepTiming:
    """Pipeline steps are timed even when they fail."""

    def test_failed_step_is_recorded_and_degrades(self, tmp_path):
        """A raising step returns its default and still records a timing."""
        analyzer = LogArchiveAnalyzer(str(tmp_path), progress=ProgressTracker(quiet=True))

        def explode():
            raise RuntimeError("boom")

        result = analyzer._run_step("analyze_db", explode, {"alerts": []})

        assert result == {"alerts": []}
        assert analyzer.errors == [{"step": "analyze_db", "message": "boom"}]
        assert analyzer._perf_tracker.get_summary()["analyze_db"]["calls"] == 1

    def test_per_file_parse_timings(self, error_log):
        """Each error log parse is timed under its file name."""
        tracker = PerformanceTracker()
        ErrorStreamParser(perf_tracker=tracker).parse_files([str(error_log)])

        assert "parse_file:errors_20260211_140000.log" in tracker.get_summary()
