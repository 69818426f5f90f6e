"""Pattern statistics: how often each rule fires and gets fixed."""

from __future__ import annotations

import logging
import threading
from collections import Counter
from typing import TYPE_CHECKING, Any, Optional

from clawfix.core.models import Feedback, Issue, PatternStats
from clawfix.data.background import BackgroundWriter

if TYPE_CHECKING:
    from clawfix.data.results import ResultStore
    from clawfix.data.store import DataStore

logger = logging.getLogger(__name__)

TOP_ISSUES_LIMIT = 10


def _unique(issues: list[Issue]) -> list[Issue]:
    seen: set[str] = set()
    unique = []
    for issue in issues:
        if issue.id not in seen:
            seen.add(issue.id)
            unique.append(issue)
    return unique


class PatternStatsTracker:
    """Counts detections and confirmed fixes per rule id.

    Durable counters are updated with the backend's atomic upserts on the
    background writer, so recording never blocks a diagnosis. In-process
    counters are kept as well and serve as the figures of record when no
    backend is configured, or when it fails.
    """

    def __init__(
        self,
        backend: Optional[DataStore] = None,
        writer: Optional[BackgroundWriter] = None,
        results: Optional[ResultStore] = None,
    ):
        self.backend = backend
        self.writer = writer or BackgroundWriter()
        self.results = results
        self._patterns: dict[str, PatternStats] = {}
        self._outcomes: Counter[str] = Counter()
        self._lock = threading.Lock()

    # ── Recording ────────────────────────────────────────────────────

    def record_detections(self, issues: list[Issue]) -> None:
        """Count each rule once per call, creating counters on first sight."""
        issues = _unique(issues)
        if not issues:
            return
        with self._lock:
            for issue in issues:
                stats = self._patterns.get(issue.id)
                if stats is None:
                    stats = PatternStats(
                        id=issue.id,
                        title=issue.title,
                        severity=issue.severity.value,
                    )
                    self._patterns[issue.id] = stats
                stats.times_detected += 1

        if self.backend is not None:
            self.writer.submit(
                self._persist_detections, issues, description="detection counts"
            )

    def _persist_detections(self, issues: list[Issue]) -> None:
        for issue in issues:
            self.backend.increment_detected(issue)

    def record_feedback(
        self,
        fix_id: str,
        success: bool,
        issues_remaining: Optional[int] = None,
        comment: Optional[str] = None,
    ) -> Feedback:
        feedback = Feedback(
            fix_id=fix_id,
            success=success,
            issues_remaining=issues_remaining,
            comment=comment,
        )

        cached = None
        if self.results is not None:
            self.results.record_outcome(fix_id, success)
            cached = self.results.peek(fix_id)

        with self._lock:
            self._outcomes["success" if success else "failed"] += 1
            if success and cached is not None:
                for rule_id in dict.fromkeys(cached.issue_ids):
                    stats = self._patterns.get(rule_id)
                    if stats is not None:
                        stats.times_fixed += 1
                        stats.success_rate = stats.times_fixed / max(
                            stats.times_detected, 1
                        )

        if self.backend is not None:
            self.writer.submit(
                self._persist_feedback, feedback, description="feedback"
            )
        return feedback

    def _persist_feedback(self, feedback: Feedback) -> None:
        self.backend.save_feedback(feedback)
        if not feedback.success:
            return
        for rule_id in dict.fromkeys(self.backend.get_issue_ids(feedback.fix_id)):
            self.backend.increment_fixed(rule_id)

    # ── Reading ──────────────────────────────────────────────────────

    def _memory_pattern(self, rule_id: str) -> Optional[PatternStats]:
        with self._lock:
            stats = self._patterns.get(rule_id)
            if stats is None:
                return None
            return PatternStats(**stats.to_dict())

    def pattern(self, rule_id: str) -> Optional[PatternStats]:
        if self.backend is not None:
            try:
                return self.backend.get_pattern(rule_id)
            except Exception as e:
                logger.warning("Pattern lookup failed, using memory: %s", e)
        return self._memory_pattern(rule_id)

    def memory_summary(self, cache_size: int = 0) -> dict[str, Any]:
        with self._lock:
            top = sorted(
                self._patterns.values(),
                key=lambda s: (-s.times_detected, s.id),
            )[:TOP_ISSUES_LIMIT]
            return {
                "totalDiagnoses": cache_size,
                "last24h": 0,
                "topIssues": [s.to_dict() for s in top],
                "versionBreakdown": [],
                "outcomes": [
                    {"outcome": outcome, "count": count}
                    for outcome, count in sorted(self._outcomes.items())
                ],
                "serviceManagerBreakdown": [],
                "sigtermCrashes": 0,
                "crashedServices": 0,
            }

    def summary(self, cache_size: int = 0) -> dict[str, Any]:
        """Durable statistics, or in-memory figures without a working backend."""
        if self.backend is not None:
            try:
                stats = self.backend.get_stats()
                stats["persistent"] = True
                return stats
            except Exception as e:
                logger.warning("Stats query failed, using memory: %s", e)
        stats = self.memory_summary(cache_size)
        stats["persistent"] = False
        return stats
