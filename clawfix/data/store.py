"""Durable data store: SQLite at ~/.clawfix/data.db."""

from __future__ import annotations

import json
import os
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

from clawfix.core.models import (
    DiagnosisResult,
    Feedback,
    Issue,
    Outcome,
    PatternStats,
    Provenance,
    Severity,
    utc_timestamp,
)

_DEFAULT_DB_PATH = os.path.join(str(Path.home()), ".clawfix", "data.db")

TOP_PATTERNS_LIMIT = 10
TOP_VERSIONS_LIMIT = 5

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS diagnoses (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    host_hash TEXT,
    os TEXT,
    arch TEXT,
    node_version TEXT,
    openclaw_version TEXT,
    issues_pattern TEXT DEFAULT '[]',
    issues_ai TEXT DEFAULT '[]',
    issues_count INTEGER DEFAULT 0,
    ai_model TEXT,
    fix_script TEXT,
    ai_summary TEXT,
    ai_insights TEXT,
    known_issues_detail TEXT DEFAULT '[]',
    outcome TEXT DEFAULT 'unknown',
    service_manager TEXT,
    service_state TEXT,
    service_exit_code TEXT,
    err_log_size_mb INTEGER,
    sigterm_count INTEGER,
    source TEXT DEFAULT 'unknown'
);

CREATE TABLE IF NOT EXISTS patterns (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    severity TEXT NOT NULL,
    times_detected INTEGER DEFAULT 0,
    times_fixed INTEGER DEFAULT 0,
    success_rate REAL,
    first_seen TEXT,
    last_seen TEXT
);

CREATE TABLE IF NOT EXISTS feedback (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    fix_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    success INTEGER NOT NULL,
    issues_remaining INTEGER,
    comment TEXT
);

CREATE TABLE IF NOT EXISTS config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_diagnoses_created ON diagnoses(created_at);
CREATE INDEX IF NOT EXISTS idx_diagnoses_version ON diagnoses(openclaw_version);
CREATE INDEX IF NOT EXISTS idx_feedback_fix ON feedback(fix_id);
"""


class DataStore:
    """SQLite store for diagnoses, pattern counters and feedback.

    One connection is shared by the request path and the background
    writer, so every statement runs under ``self._lock``.
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or _DEFAULT_DB_PATH
        if self.db_path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_db(self) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.executescript(_SCHEMA)
            conn.commit()

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    # ── Config ───────────────────────────────────────────────────────

    def get_config(self, key: str) -> Optional[str]:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT value FROM config WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else None

    def set_config(self, key: str, value: str) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                "INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                (key, value),
            )
            conn.commit()

    def list_config(self) -> dict[str, str]:
        with self._lock:
            rows = self._get_conn().execute(
                "SELECT key, value FROM config ORDER BY key"
            ).fetchall()
        return {row["key"]: row["value"] for row in rows}

    # ── Diagnoses ────────────────────────────────────────────────────

    def save_diagnosis(self, result: DiagnosisResult) -> None:
        """Persist a result once; a second save of the same id is ignored."""
        p = result.provenance
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                """INSERT OR IGNORE INTO diagnoses
                   (id, created_at, host_hash, os, arch, node_version,
                    openclaw_version, issues_pattern, issues_ai, issues_count,
                    ai_model, fix_script, ai_summary, ai_insights,
                    known_issues_detail, outcome, service_manager,
                    service_state, service_exit_code, err_log_size_mb,
                    sigterm_count, source)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?,
                           ?, ?, ?, ?, ?)""",
                (
                    result.fix_id,
                    result.timestamp,
                    p.host_hash,
                    p.os,
                    p.arch,
                    p.runtime_version,
                    p.installation_version,
                    json.dumps(result.issue_ids),
                    json.dumps(list(p.ai_issues)),
                    result.issues_found,
                    result.model,
                    result.fix_script,
                    result.analysis,
                    result.ai_insights,
                    json.dumps([i.to_dict() for i in result.issues]),
                    result.outcome.value,
                    p.service_manager,
                    p.service_state,
                    p.service_exit_code,
                    p.err_log_size_mb,
                    p.sigterm_count,
                    p.source,
                ),
            )
            conn.commit()

    def get_diagnosis(self, fix_id: str) -> Optional[DiagnosisResult]:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT * FROM diagnoses WHERE id = ?", (fix_id,)
            ).fetchone()
            if row is None:
                return None
            issues = self._issues_for_row(row)

        return DiagnosisResult(
            fix_id=row["id"],
            timestamp=row["created_at"],
            issues=issues,
            analysis=row["ai_summary"]
            or f"Pattern matching found {row['issues_count']} issue(s).",
            fix_script=row["fix_script"],
            ai_insights=row["ai_insights"] or "",
            model=row["ai_model"] or "pattern-matching",
            provenance=Provenance(
                host_hash=row["host_hash"],
                os=row["os"],
                arch=row["arch"],
                runtime_version=row["node_version"],
                installation_version=row["openclaw_version"],
                service_manager=row["service_manager"],
                service_state=row["service_state"],
                service_exit_code=row["service_exit_code"],
                err_log_size_mb=row["err_log_size_mb"],
                sigterm_count=row["sigterm_count"],
                ai_issues=tuple(json.loads(row["issues_ai"] or "[]")),
                source=row["source"] or "unknown",
            ),
            outcome=Outcome(row["outcome"] or "unknown"),
        )

    def _issues_for_row(self, row: sqlite3.Row) -> list[Issue]:
        detail = json.loads(row["known_issues_detail"] or "[]")
        if detail:
            return [Issue.from_dict(d) for d in detail]

        # Older rows only carry ids; rebuild what we can from patterns
        ids = json.loads(row["issues_pattern"] or "[]")
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        rows = self._get_conn().execute(
            f"SELECT id, title, severity FROM patterns WHERE id IN ({placeholders})",
            ids,
        ).fetchall()
        by_id = {r["id"]: r for r in rows}
        return [
            Issue(
                id=pid,
                severity=Severity(by_id[pid]["severity"]),
                title=by_id[pid]["title"],
                description="",
                remediation="",
            )
            for pid in ids
            if pid in by_id
        ]

    def get_issue_ids(self, fix_id: str) -> list[str]:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT issues_pattern FROM diagnoses WHERE id = ?", (fix_id,)
            ).fetchone()
        return json.loads(row["issues_pattern"] or "[]") if row else []

    # ── Patterns ─────────────────────────────────────────────────────

    def increment_detected(self, issue: Issue) -> None:
        now = utc_timestamp()
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                """INSERT INTO patterns
                   (id, title, severity, times_detected, first_seen, last_seen)
                   VALUES (?, ?, ?, 1, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       times_detected = times_detected + 1,
                       last_seen = excluded.last_seen""",
                (issue.id, issue.title, issue.severity.value, now, now),
            )
            conn.commit()

    def increment_fixed(self, rule_id: str) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                """UPDATE patterns SET
                       times_fixed = times_fixed + 1,
                       success_rate = CAST(times_fixed + 1 AS REAL)
                                      / MAX(times_detected, 1)
                   WHERE id = ?""",
                (rule_id,),
            )
            conn.commit()

    def get_pattern(self, rule_id: str) -> Optional[PatternStats]:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT * FROM patterns WHERE id = ?", (rule_id,)
            ).fetchone()
        if row is None:
            return None
        return PatternStats(
            id=row["id"],
            title=row["title"],
            severity=row["severity"],
            times_detected=row["times_detected"] or 0,
            times_fixed=row["times_fixed"] or 0,
            success_rate=row["success_rate"],
        )

    # ── Feedback ─────────────────────────────────────────────────────

    def save_feedback(self, feedback: Feedback) -> None:
        """Append feedback and record the outcome on its diagnosis."""
        outcome = Outcome.SUCCESS if feedback.success else Outcome.FAILED
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                """INSERT INTO feedback
                   (fix_id, created_at, success, issues_remaining, comment)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    feedback.fix_id,
                    utc_timestamp(),
                    1 if feedback.success else 0,
                    feedback.issues_remaining,
                    feedback.comment,
                ),
            )
            conn.execute(
                "UPDATE diagnoses SET outcome = ? WHERE id = ?",
                (outcome.value, feedback.fix_id),
            )
            conn.commit()

    def get_feedback(self, fix_id: str) -> list[dict[str, Any]]:
        with self._lock:
            rows = self._get_conn().execute(
                "SELECT * FROM feedback WHERE fix_id = ? ORDER BY id", (fix_id,)
            ).fetchall()
        return [dict(row) for row in rows]

    # ── Stats ────────────────────────────────────────────────────────

    def get_stats(self) -> dict[str, Any]:
        cutoff = utc_timestamp(datetime.now(timezone.utc) - timedelta(hours=24))
        with self._lock:
            conn = self._get_conn()

            def count(sql: str, params: tuple = ()) -> int:
                return conn.execute(sql, params).fetchone()[0]

            def rows(sql: str, params: tuple = ()) -> list[dict[str, Any]]:
                return [dict(r) for r in conn.execute(sql, params).fetchall()]

            return {
                "totalDiagnoses": count("SELECT COUNT(*) FROM diagnoses"),
                "last24h": count(
                    "SELECT COUNT(*) FROM diagnoses WHERE created_at > ?", (cutoff,)
                ),
                "topIssues": rows(
                    """SELECT id, title, severity, times_detected, times_fixed,
                              success_rate
                       FROM patterns ORDER BY times_detected DESC, id LIMIT ?""",
                    (TOP_PATTERNS_LIMIT,),
                ),
                "versionBreakdown": rows(
                    """SELECT openclaw_version, COUNT(*) AS count FROM diagnoses
                       WHERE openclaw_version IS NOT NULL
                       GROUP BY openclaw_version ORDER BY count DESC LIMIT ?""",
                    (TOP_VERSIONS_LIMIT,),
                ),
                "outcomes": rows(
                    "SELECT outcome, COUNT(*) AS count FROM diagnoses GROUP BY outcome"
                ),
                "serviceManagerBreakdown": rows(
                    """SELECT service_manager, COUNT(*) AS count FROM diagnoses
                       WHERE service_manager IS NOT NULL
                       GROUP BY service_manager ORDER BY count DESC"""
                ),
                "sigtermCrashes": count(
                    """SELECT COUNT(*) FROM diagnoses
                       WHERE sigterm_count > 0 OR service_state = 'sigterm'"""
                ),
                "crashedServices": count(
                    """SELECT COUNT(*) FROM diagnoses
                       WHERE service_state IN ('crashed', 'failed')"""
                ),
            }
