"""Tests for clawfix.data.stats.PatternStatsTracker."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

from clawfix.core.models import Severity
from clawfix.data.results import ResultStore
from clawfix.data.stats import PatternStatsTracker


class TestDetections:
    def test_two_calls_count_twice(self, temp_db, writer, issue_factory):
        tracker = PatternStatsTracker(temp_db, writer=writer)
        tracker.record_detections([issue_factory()])
        tracker.record_detections([issue_factory()])
        assert writer.drain(timeout=5)

        assert temp_db.get_pattern("no-soul").times_detected == 2
        assert tracker.pattern("no-soul").times_detected == 2

    def test_duplicate_ids_in_one_call_count_once(self, writer, issue_factory):
        tracker = PatternStatsTracker(writer=writer)
        tracker.record_detections([issue_factory(), issue_factory()])
        assert tracker.pattern("no-soul").times_detected == 1

    def test_empty_call_is_noop(self, temp_db, writer):
        tracker = PatternStatsTracker(temp_db, writer=writer)
        tracker.record_detections([])
        assert writer.drain(timeout=5)
        assert temp_db.get_stats()["topIssues"] == []

    def test_concurrent_detections_are_not_lost(self, temp_db, writer, issue_factory):
        tracker = PatternStatsTracker(temp_db, writer=writer)
        issue = issue_factory("port-conflict", Severity.CRITICAL)

        def worker() -> None:
            for _ in range(25):
                tracker.record_detections([issue])

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert writer.drain(timeout=10)

        assert temp_db.get_pattern("port-conflict").times_detected == 100
        assert tracker.memory_summary()["topIssues"][0]["times_detected"] == 100


class TestFeedback:
    def _diagnosed(self, temp_db, writer, result_factory):
        results = ResultStore(temp_db, writer=writer)
        tracker = PatternStatsTracker(temp_db, writer=writer, results=results)
        result = result_factory()
        results.put(result)
        tracker.record_detections(result.issues)
        return tracker, result

    def test_success_updates_rate(self, temp_db, writer, result_factory):
        tracker, result = self._diagnosed(temp_db, writer, result_factory)
        tracker.record_feedback(result.fix_id, success=True)
        assert writer.drain(timeout=5)

        pattern = temp_db.get_pattern("no-soul")
        assert pattern.times_fixed == 1
        assert pattern.success_rate == 1.0
        assert temp_db.get_diagnosis(result.fix_id).outcome.value == "success"

    def test_failure_does_not_count_fix(self, temp_db, writer, result_factory):
        tracker, result = self._diagnosed(temp_db, writer, result_factory)
        feedback = tracker.record_feedback(result.fix_id, success=False, issues_remaining=1)
        assert writer.drain(timeout=5)

        assert feedback.issues_remaining == 1
        assert temp_db.get_pattern("no-soul").times_fixed == 0
        assert temp_db.get_feedback(result.fix_id)[0]["success"] == 0

    def test_unknown_fix_id(self, temp_db, writer):
        tracker = PatternStatsTracker(temp_db, writer=writer)
        feedback = tracker.record_feedback("ghost", success=True)
        assert writer.drain(timeout=5)
        assert feedback.fix_id == "ghost"
        assert len(temp_db.get_feedback("ghost")) == 1


class TestSummary:
    def test_without_backend(self, writer, issue_factory):
        tracker = PatternStatsTracker(writer=writer)
        tracker.record_detections([issue_factory("a"), issue_factory("b")])
        tracker.record_detections([issue_factory("b")])
        tracker.record_feedback("x", success=True)

        summary = tracker.summary(cache_size=3)
        assert summary["persistent"] is False
        assert summary["totalDiagnoses"] == 3
        assert [p["id"] for p in summary["topIssues"]] == ["b", "a"]
        assert summary["outcomes"] == [{"outcome": "success", "count": 1}]

    def test_with_backend(self, temp_db, writer):
        summary = PatternStatsTracker(temp_db, writer=writer).summary()
        assert summary["persistent"] is True
        assert "crashedServices" in summary

    def test_failing_backend_falls_back(self, writer, issue_factory):
        backend = MagicMock()
        backend.get_stats.side_effect = RuntimeError("no such table")
        backend.get_pattern.side_effect = RuntimeError("no such table")
        tracker = PatternStatsTracker(backend, writer=writer)
        tracker.record_detections([issue_factory()])

        assert tracker.summary()["persistent"] is False
        assert tracker.pattern("no-soul").times_detected == 1
