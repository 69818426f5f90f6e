"""Tests for clawfix.core.composer."""

from __future__ import annotations

import shutil
import subprocess

import pytest

from clawfix.core.augmenter import Augmenter
from clawfix.core.composer import CONFIG_MARKER, compose, needs_restart
from clawfix.core.models import Analysis, Issue, Severity
from clawfix.core.rules import RULES, get_rule

RESTART_LINE = "openclaw gateway restart"


def _issue(rule_id: str) -> Issue:
    return get_rule(rule_id).to_issue()


class TestStructure:
    def test_starts_with_shebang_then_strict_mode(self, issue_factory):
        script = compose([issue_factory()], None, "fix123")
        lines = script.splitlines()
        assert lines[0] == "#!/usr/bin/env bash"
        assert lines[1] == "# ClawFix Fix Script: fix123"
        assert "set -euo pipefail" in script
        assert script.index("set -euo pipefail") < script.index("Backup current config")

    def test_single_backup_for_many_issues(self):
        issues = [_issue("no-hybrid-search"), _issue("no-memory-flush"), _issue("no-soul")]
        script = compose(issues, None, "fix123")
        assert script.count("# Backup current config") == 1

    def test_backup_even_without_issues(self):
        script = compose([], None, "fix123")
        assert script.count("# Backup current config") == 1

    def test_issue_blocks_in_given_order(self, issue_factory):
        issues = [issue_factory("b-rule"), issue_factory("a-rule", Severity.CRITICAL)]
        script = compose(issues, None, "fix123")
        assert script.index('echo "fixing b-rule"') < script.index('echo "fixing a-rule"')
        assert "# ─── Fix: Title for a-rule (critical) ───" in script

    def test_ends_with_newline_and_feedback_call(self):
        script = compose([], None, "fix123")
        assert script.endswith("|| true\n")
        assert "https://clawfix.dev/api/feedback/fix123" in script

    def test_custom_feedback_url(self):
        script = compose([], None, "fix123", feedback_url="http://localhost:3001/")
        assert 'curl -s -X POST "http://localhost:3001/api/feedback/fix123"' in script


class TestDeterminism:
    def test_byte_identical(self):
        issues = [_issue("mem0-graph-free"), _issue("gateway-zombie")]
        analysis = Analysis(summary="s", extra_fix='echo "ai"')
        first = compose(issues, analysis, "fix123", generated_at="2026-03-01T00:00:00.000Z")
        second = compose(issues, analysis, "fix123", generated_at="2026-03-01T00:00:00.000Z")
        assert first == second

    def test_timestamp_line_only_when_given(self):
        assert "# Generated:" not in compose([], None, "fix123")
        stamped = compose([], None, "fix123", generated_at="2026-03-01T00:00:00.000Z")
        assert "# Generated: 2026-03-01T00:00:00.000Z" in stamped.splitlines()[2]


class TestAIBlock:
    def test_included_with_extra_fix(self):
        analysis = Analysis(summary="s", extra_fix='  echo "tune heartbeat"\n')
        script = compose([], analysis, "fix123")
        assert "# ─── Additional AI-Recommended Fixes ───" in script
        assert 'echo "tune heartbeat"' in script

    @pytest.mark.parametrize("extra_fix", ["", "   \n"])
    def test_omitted_without_extra_fix(self, extra_fix):
        script = compose([], Analysis(summary="s", extra_fix=extra_fix), "fix123")
        assert "AI-Recommended" not in script

    def test_ai_block_follows_issue_blocks(self, issue_factory):
        analysis = Analysis(summary="s", extra_fix='echo "ai"')
        script = compose([issue_factory()], analysis, "fix123")
        assert script.index('echo "fixing no-soul"') < script.index('echo "ai"')


class TestRestart:
    def test_no_restart_without_config_edits(self):
        script = compose([_issue("no-soul")], None, "fix123")
        assert RESTART_LINE not in script

    def test_restart_when_config_edited(self):
        issues = [_issue("no-soul"), _issue("no-hybrid-search")]
        script = compose(issues, None, "fix123")
        assert script.count(RESTART_LINE) == 1

    def test_restart_after_ai_block(self):
        analysis = Analysis(summary="s", extra_fix='echo "ai"')
        script = compose([_issue("no-hybrid-search")], analysis, "fix123")
        assert script.index('echo "ai"') < script.index(RESTART_LINE)

    def test_needs_restart(self, issue_factory):
        assert needs_restart([issue_factory()]) is False
        edited = Issue("x", Severity.LOW, "t", "d", f"oc_config_set {CONFIG_MARKER} '.a = 1'")
        assert needs_restart([issue_factory(), edited]) is True


class TestErrors:
    def test_empty_result_id(self):
        with pytest.raises(ValueError, match="result_id"):
            compose([], None, "")

    def test_empty_remediation(self):
        broken = Issue("broken", Severity.HIGH, "t", "d", "  ")
        with pytest.raises(ValueError, match="broken"):
            compose([broken], None, "fix123")


@pytest.mark.skipif(shutil.which("bash") is None, reason="bash not installed")
class TestShellSyntax:
    def _check(self, script: str, tmp_path) -> subprocess.CompletedProcess:
        path = tmp_path / "fix.sh"
        path.write_text(script)
        return subprocess.run(
            ["bash", "-n", str(path)], capture_output=True, text=True
        )

    def test_fenced_ai_fix_parses(self, tmp_path, mock_llm_client, healthy_snapshot):
        mock_llm_client.analyze.return_value = (
            "## Summary\nMostly fine.\n\n"
            "## Fix\n```bash\n# Raise the heartbeat interval\n"
            "jq '.agents.defaults.heartbeat.every = \"1h\"' \"$OPENCLAW_CONFIG\"\n```\n"
        )
        analysis = Augmenter(mock_llm_client).augment(healthy_snapshot, [])
        script = compose([], analysis, "fix123")

        result = self._check(script, tmp_path)
        assert result.returncode == 0, result.stderr
        assert "# Raise the heartbeat interval" in script
        assert "```" not in script

    def test_every_rule_template_parses(self, tmp_path):
        script = compose([rule.to_issue() for rule in RULES], None, "fix123")
        result = self._check(script, tmp_path)
        assert result.returncode == 0, result.stderr
