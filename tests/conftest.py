"""Shared test fixtures for clawfix tests."""

from __future__ import annotations

import copy
from typing import Any
from unittest.mock import MagicMock

import pytest

from clawfix.core.augmenter import Augmenter
from clawfix.core.models import (
    DiagnosisResult,
    Issue,
    Provenance,
    Severity,
)
from clawfix.core.pipeline import DiagnosisPipeline
from clawfix.core.snapshot import Snapshot
from clawfix.data.background import BackgroundWriter
from clawfix.data.results import ResultStore
from clawfix.data.stats import PatternStatsTracker
from clawfix.data.store import DataStore

# A snapshot of a well-configured, running installation: no rule fires.
HEALTHY_PAYLOAD: dict[str, Any] = {
    "version": "0.4.0",
    "hostHash": "a1b2c3d4",
    "system": {
        "os": "Darwin",
        "osVersion": "24.3.0",
        "arch": "arm64",
        "nodeVersion": "v22.12.0",
        "npmVersion": "10.9.0",
    },
    "openclaw": {
        "version": "2026.2.14",
        "binary": "/opt/homebrew/bin/openclaw",
        "configDir": "~/.openclaw",
        "gatewayStatus": "Gateway running (pid 4242) listening on 18789",
        "gatewayPid": "4242",
        "gatewayPort": 18789,
        "processExists": True,
        "portListening": True,
    },
    "service": {
        "manager": "launchd",
        "state": "running",
        "exitCode": "0",
        "pid": "4242",
    },
    "config": {
        "agents": {
            "defaults": {
                "memorySearch": {
                    "query": {"hybrid": {"enabled": True}},
                    "sessionTranscripts": {"enabled": True},
                },
                "contextPruning": {"mode": "adaptive"},
                "compaction": {
                    "mode": "safeguard",
                    "reserveTokensFloor": 20000,
                    "memoryFlush": {"enabled": True},
                },
                "heartbeat": {"every": "1h", "model": "anthropic/claude-haiku"},
            }
        },
        "plugins": {"entries": {}},
        "update": {"auto": {"enabled": False}},
    },
    "logs": {
        "errors": "",
        "stderr": "",
        "errLogSizeMB": 1,
        "handshakeTimeoutCount": 0,
        "sigtermCount": 0,
    },
    "workspace": {
        "path": "~/.openclaw/workspace",
        "mdFiles": 12,
        "memoryFiles": 4,
        "hasSoul": True,
        "hasAgents": True,
    },
    "browser": {"status": "ok"},
}


def make_payload(**sections: Any) -> dict[str, Any]:
    """Healthy payload with whole sections replaced (``None`` removes one)."""
    payload = copy.deepcopy(HEALTHY_PAYLOAD)
    for name, value in sections.items():
        if value is None:
            payload.pop(name, None)
        else:
            payload[name] = value
    return payload


def make_issue(rule_id: str = "no-soul", severity: Severity = Severity.LOW) -> Issue:
    return Issue(
        id=rule_id,
        severity=severity,
        title=f"Title for {rule_id}",
        description=f"Description for {rule_id}",
        remediation=f'echo "fixing {rule_id}"',
    )


def make_result(fix_id: str = "abc123def456", **kwargs: Any) -> DiagnosisResult:
    defaults: dict[str, Any] = {
        "timestamp": "2026-03-01T12:00:00.000Z",
        "issues": [make_issue()],
        "analysis": "Pattern matching found 1 issue(s).",
        "fix_script": "#!/usr/bin/env bash\nset -euo pipefail\n",
        "provenance": Provenance(
            host_hash="a1b2c3d4",
            os="Darwin",
            arch="arm64",
            runtime_version="v22.12.0",
            installation_version="2026.2.14",
            source="curl",
        ),
    }
    defaults.update(kwargs)
    return DiagnosisResult(fix_id=fix_id, **defaults)


@pytest.fixture
def healthy_payload() -> dict[str, Any]:
    return copy.deepcopy(HEALTHY_PAYLOAD)


@pytest.fixture
def healthy_snapshot() -> Snapshot:
    return Snapshot(HEALTHY_PAYLOAD)


@pytest.fixture
def temp_db(tmp_path):
    """DataStore with a temporary SQLite database."""
    db_path = str(tmp_path / "test.db")
    store = DataStore(db_path=db_path)
    yield store
    store.close()


@pytest.fixture
def writer():
    w = BackgroundWriter()
    yield w
    w.shutdown()


@pytest.fixture
def mock_llm_client() -> MagicMock:
    client = MagicMock()
    client.model = "minimax/minimax-m2.5"
    client.analyze.return_value = (
        "## Summary\nGateway looks healthy.\n"
        "## Optimization\nLower the heartbeat frequency.\n"
        "## Fix\necho \"extra fix\"\n"
    )
    return client


@pytest.fixture
def pipeline_parts(temp_db, writer):
    """(pipeline, results, tracker) wired to a temp database, no AI."""
    results = ResultStore(temp_db, writer=writer)
    tracker = PatternStatsTracker(temp_db, writer=writer, results=results)
    pipeline = DiagnosisPipeline(Augmenter(), results, tracker)
    return pipeline, results, tracker


@pytest.fixture
def payload_factory():
    return make_payload


@pytest.fixture
def issue_factory():
    return make_issue


@pytest.fixture
def result_factory():
    return make_result
