"""Tests for clawfix.core.models."""

from __future__ import annotations

from datetime import datetime, timezone

from clawfix.core.models import (
    PUBLIC_FIELDS,
    Feedback,
    Issue,
    Provenance,
    Severity,
    utc_timestamp,
)


class TestTimestamp:
    def test_format(self):
        when = datetime(2026, 3, 1, 12, 30, 5, 123456, tzinfo=timezone.utc)
        assert utc_timestamp(when) == "2026-03-01T12:30:05.123Z"

    def test_now_is_utc(self):
        assert utc_timestamp().endswith("Z")


class TestSeverity:
    def test_rank_order(self):
        ranks = [s.rank for s in (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW)]
        assert ranks == [0, 1, 2, 3]


class TestIssue:
    def test_public_dict_has_no_fix(self, issue_factory):
        d = issue_factory().to_public_dict()
        assert set(d) == {"id", "severity", "title", "description"}

    def test_dict_round_trip(self, issue_factory):
        issue = issue_factory("port-conflict", Severity.CRITICAL)
        assert Issue.from_dict(issue.to_dict()) == issue


class TestPublicView:
    def test_exact_keys(self, result_factory):
        view = result_factory().public_view()
        assert tuple(view) == PUBLIC_FIELDS

    def test_no_provenance_leaks(self, result_factory):
        view = result_factory().public_view()
        flat = repr(view)
        assert "a1b2c3d4" not in flat
        assert "hostHash" not in view
        assert "source" not in view

    def test_issues_found_counts_ai_issues(self, result_factory):
        result = result_factory(provenance=Provenance(ai_issues=("extra",)))
        assert result.issues_found == 2


class TestFeedback:
    def test_from_body(self):
        fb = Feedback.from_request(
            "abc", {"success": True, "issuesRemaining": 1, "comment": "ok"}
        )
        assert fb == Feedback("abc", True, 1, "ok")

    def test_from_query(self):
        fb = Feedback.from_request("abc", None, {"success": "TRUE", "remaining": "2"})
        assert fb.success is True
        assert fb.issues_remaining == 2

    def test_defaults(self):
        fb = Feedback.from_request("abc", {"success": "yes", "issuesRemaining": True})
        assert fb.success is False
        assert fb.issues_remaining is None
        assert fb.comment is None
