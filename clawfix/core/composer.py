"""Fix script composer.

Merges detected issues and the optional AI fix text into one reviewable
bash script. Composition is pure: the same arguments always give the same
bytes, and nothing is returned unless the whole script was built.
"""

from __future__ import annotations

from typing import Optional

from clawfix.core.models import Analysis, Issue

DEFAULT_PUBLIC_URL = "https://clawfix.dev"

# A remediation block that names this triggers the gateway restart
CONFIG_MARKER = '"$OPENCLAW_CONFIG"'

BACKUP_BLOCK = """\
# Backup current config
if [ -f "$OPENCLAW_CONFIG" ]; then
  cp "$OPENCLAW_CONFIG" "$OPENCLAW_CONFIG.bak.$(date +%s)"
  echo "✅ Config backed up"
fi"""

PREAMBLE = """\
set -euo pipefail

OPENCLAW_DIR="${OPENCLAW_DIR:-$HOME/.openclaw}"
OPENCLAW_CONFIG="$OPENCLAW_DIR/openclaw.json"
OPENCLAW_LOG_DIR="$OPENCLAW_DIR/logs"
OPENCLAW_WORKSPACE=""
OPENCLAW_GATEWAY_PORT=18789
if command -v jq >/dev/null 2>&1 && [ -f "$OPENCLAW_CONFIG" ]; then
  OPENCLAW_WORKSPACE="$(jq -r '.agents.defaults.workspace // empty' "$OPENCLAW_CONFIG" 2>/dev/null || true)"
  OPENCLAW_GATEWAY_PORT="$(jq -r '.gateway.port // 18789' "$OPENCLAW_CONFIG" 2>/dev/null || echo 18789)"
fi
OPENCLAW_WORKSPACE="${OPENCLAW_WORKSPACE:-$OPENCLAW_DIR/workspace}"
OPENCLAW_WORKSPACE="${OPENCLAW_WORKSPACE/#\\~/$HOME}"

# Apply a jq filter to a JSON file in place
oc_config_set() {
  local file="$1" filter="$2"
  [ -f "$file" ] || { echo "⚠️  $file not found, skipping"; return 0; }
  command -v jq >/dev/null 2>&1 || { echo "⚠️  jq not installed, skipping: $filter"; return 0; }
  local tmp
  tmp="$(mktemp)"
  jq "$filter" "$file" > "$tmp" && mv "$tmp" "$file"
}"""

RESTART_BLOCK = """\
# ─── Restart Gateway to Apply Changes ───
echo "Restarting OpenClaw gateway..."
openclaw gateway restart 2>/dev/null || echo "⚠️  Could not restart gateway automatically. Run: openclaw gateway restart\""""


def _header(result_id: str, generated_at: Optional[str]) -> list[str]:
    lines = [
        "#!/usr/bin/env bash",
        f"# ClawFix Fix Script: {result_id}",
    ]
    if generated_at:
        lines.append(f"# Generated: {generated_at}")
    lines += [
        "# Review each step before running!",
        "#",
        "# Usage: bash fix.sh",
    ]
    return lines


def _issue_block(issue: Issue) -> list[str]:
    if not issue.remediation.strip():
        raise ValueError(f"Issue {issue.id!r} has no remediation")
    description = " ".join(issue.description.split())
    return [
        f"# ─── Fix: {issue.title} ({issue.severity.value}) ───",
        f"# {description}",
        issue.remediation.rstrip(),
    ]


def _feedback_block(result_id: str, feedback_url: str) -> list[str]:
    url = f"{feedback_url.rstrip('/')}/api/feedback/{result_id}"
    return [
        "# ─── Optional: Tell ClawFix if this worked ───",
        "# This helps us improve fixes for everyone. Remove if you prefer.",
        f'curl -s -X POST "{url}" \\',
        '  -H "Content-Type: application/json" \\',
        "  -d '{\"success\": true}' &>/dev/null || true",
    ]


def needs_restart(issues: list[Issue]) -> bool:
    """Whether any emitted remediation edits the config file."""
    return any(CONFIG_MARKER in issue.remediation for issue in issues)


def compose(
    issues: list[Issue],
    analysis: Optional[Analysis],
    result_id: str,
    generated_at: Optional[str] = None,
    feedback_url: str = DEFAULT_PUBLIC_URL,
) -> str:
    """Build the fix script for one diagnosis.

    Sections, in order: header, strict-mode preamble, one config backup,
    one block per issue (in the given order), the AI block when there is
    extra fix text, a gateway restart when a block edits the config, a
    closing summary and the removable feedback call.

    Raises:
        ValueError: If ``result_id`` is empty or an issue has no
            remediation text. No partial script is ever returned.
    """
    if not result_id:
        raise ValueError("result_id is required")

    blocks: list[list[str]] = [
        _header(result_id, generated_at),
        [PREAMBLE],
        [BACKUP_BLOCK],
    ]
    blocks.extend(_issue_block(issue) for issue in issues)

    extra_fix = analysis.extra_fix.strip() if analysis else ""
    if extra_fix:
        blocks.append(["# ─── Additional AI-Recommended Fixes ───", extra_fix])

    if needs_restart(issues):
        blocks.append([RESTART_BLOCK])

    blocks.append([
        'echo ""',
        "echo \"🦞 All fixes applied! Run 'openclaw status' to verify.\"",
        f'echo "Fix ID: {result_id}"',
    ])
    blocks.append(_feedback_block(result_id, feedback_url))

    return "\n\n".join("\n".join(block) for block in blocks) + "\n"
