"""Core data models for clawfix."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utc_timestamp(when: Optional[datetime] = None) -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    when = when or datetime.now(timezone.utc)
    return when.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


class Severity(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """0 for critical, growing as severity drops."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}


class Outcome(Enum):
    UNKNOWN = "unknown"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class Issue:
    id: str
    severity: Severity
    title: str
    description: str
    remediation: str

    def to_public_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
        }

    def to_dict(self) -> dict[str, str]:
        d = self.to_public_dict()
        d["fix"] = self.remediation
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Issue:
        return cls(
            id=data["id"],
            severity=Severity(data.get("severity", "low")),
            title=data.get("title", ""),
            description=data.get("description", ""),
            remediation=data.get("fix", ""),
        )


@dataclass(frozen=True)
class Analysis:
    """Output of the analysis augmenter."""

    summary: str
    insights: str = ""
    extra_fix: str = ""
    raw: str = ""


@dataclass(frozen=True)
class Provenance:
    """Internal-only facts about where a result came from.

    Stored alongside a result, never part of its public view.
    """

    host_hash: Optional[str] = None
    os: Optional[str] = None
    arch: Optional[str] = None
    runtime_version: Optional[str] = None
    installation_version: Optional[str] = None
    service_manager: Optional[str] = None
    service_state: Optional[str] = None
    service_exit_code: Optional[str] = None
    err_log_size_mb: Optional[int] = None
    sigterm_count: Optional[int] = None
    ai_issues: tuple[str, ...] = ()
    source: str = "unknown"


# Keys of the client-visible projection, in response order.
PUBLIC_FIELDS = (
    "fixId",
    "timestamp",
    "issuesFound",
    "knownIssues",
    "analysis",
    "fixScript",
    "aiInsights",
    "model",
)


@dataclass
class DiagnosisResult:
    fix_id: str
    timestamp: str  # ISO-8601, UTC
    issues: list[Issue]
    analysis: str
    fix_script: Optional[str]
    ai_insights: str = ""
    model: str = "pattern-matching"
    provenance: Provenance = field(default_factory=Provenance)
    outcome: Outcome = Outcome.UNKNOWN

    @property
    def issues_found(self) -> int:
        return len(self.issues) + len(self.provenance.ai_issues)

    @property
    def issue_ids(self) -> list[str]:
        return [i.id for i in self.issues]

    def public_view(self) -> dict[str, Any]:
        """The only representation of a result that may leave the process."""
        view = {
            "fixId": self.fix_id,
            "timestamp": self.timestamp,
            "issuesFound": self.issues_found,
            "knownIssues": [i.to_public_dict() for i in self.issues],
            "analysis": self.analysis,
            "fixScript": self.fix_script,
            "aiInsights": self.ai_insights,
            "model": self.model,
        }
        return {k: view[k] for k in PUBLIC_FIELDS}


@dataclass(frozen=True)
class Feedback:
    fix_id: str
    success: bool
    issues_remaining: Optional[int] = None
    comment: Optional[str] = None

    @classmethod
    def from_request(
        cls,
        fix_id: str,
        body: Optional[dict[str, Any]] = None,
        query: Optional[dict[str, str]] = None,
    ) -> Feedback:
        """Build feedback from a JSON body, falling back to query params."""
        body = body if isinstance(body, dict) else {}
        query = query or {}

        success = body.get("success")
        if not isinstance(success, bool):
            success = str(query.get("success", "")).lower() == "true"

        remaining = body.get("issuesRemaining")
        if not isinstance(remaining, int) or isinstance(remaining, bool):
            try:
                remaining = int(query.get("remaining", ""))
            except ValueError:
                remaining = None

        comment = body.get("comment")
        if not isinstance(comment, str) or not comment:
            comment = None

        return cls(
            fix_id=fix_id,
            success=success,
            issues_remaining=remaining,
            comment=comment,
        )


@dataclass
class PatternStats:
    id: str
    title: str
    severity: str
    times_detected: int = 0
    times_fixed: int = 0
    success_rate: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "severity": self.severity,
            "times_detected": self.times_detected,
            "times_fixed": self.times_fixed,
            "success_rate": self.success_rate,
        }
