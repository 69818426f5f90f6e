"""Known OpenClaw issues: static rule metadata and remediation templates.

Each rule id is a stable join key for pattern statistics: never reuse an
id for a different meaning. Detection logic lives in
``clawfix.core.predicates`` and is joined to this table by id.

Remediation templates run inside the composed fix script, after its
preamble, and may use:

  OPENCLAW_DIR, OPENCLAW_CONFIG, OPENCLAW_LOG_DIR, OPENCLAW_WORKSPACE,
  OPENCLAW_GATEWAY_PORT, and ``oc_config_set <file> <jq filter>``.

Every template must be safe to run more than once.
"""

from __future__ import annotations

import textwrap
from dataclasses import dataclass

from clawfix.core.models import Issue, Severity


def _sh(text: str) -> str:
    return textwrap.dedent(text).strip()


@dataclass(frozen=True)
class RuleSpec:
    id: str
    severity: Severity
    title: str
    description: str
    remediation: str

    def to_issue(self) -> Issue:
        return Issue(
            id=self.id,
            severity=self.severity,
            title=self.title,
            description=self.description,
            remediation=self.remediation,
        )


RULES: tuple[RuleSpec, ...] = (
    RuleSpec(
        id="mem0-graph-free",
        severity=Severity.CRITICAL,
        title="Mem0 enableGraph on Free plan",
        description=(
            "Mem0 plugin has enableGraph: true but this requires the Pro plan "
            "($99/mo). Every autoCapture and autoRecall call silently fails, "
            "meaning zero memories are stored."
        ),
        remediation=_sh(r"""
# Disable Mem0 graph memory (requires the Pro plan)
oc_config_set "$OPENCLAW_CONFIG" 'if (.plugins.entries | type) == "object" then .plugins.entries |= with_entries(if .value.config.enableGraph == true then .value.config.enableGraph = false else . end) else . end'
echo "✅ Mem0 graph disabled — autoCapture will now work on Free plan"
"""),
    ),
    RuleSpec(
        id="gateway-not-running",
        severity=Severity.CRITICAL,
        title="Gateway is not running",
        description=(
            "The OpenClaw gateway process is not running. This could be due "
            "to a config error, port conflict, or crash."
        ),
        remediation=_sh(r"""
# Start the gateway
openclaw gateway restart || echo "⚠️  Gateway did not start. Check: tail -20 $OPENCLAW_LOG_DIR/gateway.err.log"
"""),
    ),
    RuleSpec(
        id="gateway-zombie",
        severity=Severity.CRITICAL,
        title="Zombie gateway process",
        description=(
            "A gateway process exists but nothing is listening on the gateway "
            "port. The process is stuck and must be killed before a restart "
            "can bind the port again."
        ),
        remediation=_sh(r"""
# Kill the stuck gateway process, then start a fresh one
for pid in $(pgrep -f "openclaw.*gateway" 2>/dev/null || true); do
  echo "Stopping stuck gateway process $pid"
  kill "$pid" 2>/dev/null || true
done
sleep 2
for pid in $(pgrep -f "openclaw.*gateway" 2>/dev/null || true); do
  kill -9 "$pid" 2>/dev/null || true
done
openclaw gateway restart || echo "⚠️  Gateway did not start. Run: openclaw gateway restart"
echo "✅ Zombie gateway replaced"
"""),
    ),
    RuleSpec(
        id="port-conflict",
        severity=Severity.CRITICAL,
        title="Port conflict (EADDRINUSE)",
        description=(
            "The gateway port is already in use by another process. This "
            "prevents OpenClaw from starting."
        ),
        remediation=_sh(r"""
# Free the gateway port and restart
PID="$(lsof -ti ":$OPENCLAW_GATEWAY_PORT" 2>/dev/null || true)"
if [ -n "$PID" ]; then
  echo "Killing process $PID on port $OPENCLAW_GATEWAY_PORT"
  kill $PID 2>/dev/null || true
  sleep 1
fi
openclaw gateway restart || echo "⚠️  Gateway did not start. Run: openclaw gateway restart"
echo "✅ Port conflict resolved"
"""),
    ),
    RuleSpec(
        id="browser-port-binding",
        severity=Severity.HIGH,
        title="Browser control port not binding (18791)",
        description=(
            "The browser control HTTP server on port 18791 won't start. This "
            "prevents browser automation from working."
        ),
        remediation=_sh(r"""
# Kill stale browser processes and free the browser ports
pkill -f "chrome.*--remote-debugging-port" 2>/dev/null || true
for port in 18791 18800; do
  PID="$(lsof -ti ":$port" 2>/dev/null || true)"
  if [ -n "$PID" ]; then
    kill $PID 2>/dev/null || true
  fi
done
sleep 1
openclaw gateway restart || echo "⚠️  Gateway did not start. Run: openclaw gateway restart"
echo "✅ Browser ports cleared"
"""),
    ),
    RuleSpec(
        id="no-hybrid-search",
        severity=Severity.MEDIUM,
        title="Hybrid search not enabled",
        description=(
            "Your memory search is using basic vector search only. Enabling "
            "hybrid search (vector + BM25) significantly improves recall, "
            "especially for exact matches like wallet addresses, error codes, "
            "and names."
        ),
        remediation=_sh(r"""
# Enable hybrid search with recommended weights
oc_config_set "$OPENCLAW_CONFIG" '.agents.defaults.memorySearch.query.hybrid = {
  "enabled": true,
  "vectorWeight": 0.6,
  "textWeight": 0.4,
  "temporalDecay": {"enabled": true, "halfLifeDays": 14}
}'
echo "✅ Hybrid search enabled (vector 0.6 + BM25 0.4 + temporal decay)"
"""),
    ),
    RuleSpec(
        id="no-context-pruning",
        severity=Severity.MEDIUM,
        title="No context pruning configured",
        description=(
            "Without context pruning, old messages pile up and waste your "
            "context window. This makes conversations more expensive and can "
            "cause compactions to happen more often."
        ),
        remediation=_sh(r"""
# Enable context pruning (cache-ttl mode, 6 hour TTL)
oc_config_set "$OPENCLAW_CONFIG" '.agents.defaults.contextPruning = {
  "mode": "cache-ttl",
  "ttl": "6h",
  "keepLastAssistants": 3
}'
echo "✅ Context pruning enabled (6h TTL, keeps last 3 assistant messages)"
"""),
    ),
    RuleSpec(
        id="no-memory-flush",
        severity=Severity.HIGH,
        title="Memory flush not enabled",
        description=(
            "When your context window fills up and compaction happens, "
            "important information will be lost. Memory flush automatically "
            "saves a summary before compacting."
        ),
        remediation=_sh(r"""
# Enable memory flush before compaction
oc_config_set "$OPENCLAW_CONFIG" '.agents.defaults.compaction.mode = (.agents.defaults.compaction.mode // "safeguard") |
  .agents.defaults.compaction.reserveTokensFloor = (.agents.defaults.compaction.reserveTokensFloor // 32000) |
  .agents.defaults.compaction.memoryFlush = {
    "enabled": true,
    "softThresholdTokens": 40000,
    "prompt": "Distill this session to memory/YYYY-MM-DD.md (use the current date, APPEND only). Focus on: decisions made, state changes, lessons learned, blockers hit, tasks completed/started. Include specific details (IDs, URLs, amounts, error messages). If nothing worth saving, reply NO_REPLY."
  }'
echo "✅ Memory flush enabled — context compaction will save summaries"
"""),
    ),
    RuleSpec(
        id="no-soul",
        severity=Severity.LOW,
        title="No SOUL.md found",
        description=(
            "SOUL.md defines your agent's personality and behavior. Without "
            "it, your agent is generic and lacks character."
        ),
        remediation=_sh(r"""
# Create a basic SOUL.md (kept if one already exists)
mkdir -p "$OPENCLAW_WORKSPACE"
if [ ! -f "$OPENCLAW_WORKSPACE/SOUL.md" ]; then
  cat > "$OPENCLAW_WORKSPACE/SOUL.md" << 'SOUL'
# SOUL.md — Who You Are

You are a helpful AI assistant. Be concise, direct, and genuinely useful.
Have opinions. Be resourceful. Earn trust through competence.

Customize this file to give your agent personality!
SOUL
  echo "✅ Created basic SOUL.md at $OPENCLAW_WORKSPACE/SOUL.md"
else
  echo "✅ SOUL.md already present"
fi
"""),
    ),
    RuleSpec(
        id="no-memory-files",
        severity=Severity.LOW,
        title="No memory files found",
        description=(
            "Your agent has no memory directory or daily note files. This "
            "means it can't persist knowledge across sessions."
        ),
        remediation=_sh(r"""
# Create the memory directory and index
mkdir -p "$OPENCLAW_WORKSPACE/memory"
if [ ! -f "$OPENCLAW_WORKSPACE/MEMORY.md" ]; then
  echo "# Memory" > "$OPENCLAW_WORKSPACE/MEMORY.md"
fi
echo "✅ Memory directory ready at $OPENCLAW_WORKSPACE/memory/"
"""),
    ),
    RuleSpec(
        id="ggml-metal-crash",
        severity=Severity.HIGH,
        title="GGML Metal GPU crash (macOS)",
        description=(
            "QMD or other GGML-based tools crash with GGML_ASSERT on macOS "
            "with Apple Silicon. This is a known Metal GPU bug. Fix: use CPU "
            "mode."
        ),
        remediation=_sh(r"""
# Disable Metal GPU for GGML (use CPU instead)
touch ~/.zshrc
grep -q '^export GGML_NO_METAL=1$' ~/.zshrc || echo 'export GGML_NO_METAL=1' >> ~/.zshrc
oc_config_set "$OPENCLAW_CONFIG" '.env.GGML_NO_METAL = "1"'
echo "✅ GGML Metal disabled — CPU mode active (fixes QMD crashes)"
"""),
    ),
    RuleSpec(
        id="orphan-tool-calls",
        severity=Severity.MEDIUM,
        title="Orphan tool_calls in session history",
        description=(
            "Session JSONL files contain tool_call entries without matching "
            "tool_result entries. This causes \"tool_call_id is not found\" "
            "errors. Known OpenClaw bug #11187."
        ),
        remediation=_sh(r"""
# Known OpenClaw bug (#11187): list session files with tool calls
find "$OPENCLAW_DIR/sessions" -name "*.jsonl" -exec grep -l "tool_call" {} \; 2>/dev/null | while read -r f; do
  echo "Check: $f"
done || true
echo "⚠️  If issues persist, clear the affected session file and run: openclaw gateway restart"
echo "Tracked at: https://github.com/openclaw/openclaw/issues/11187"
"""),
    ),
    RuleSpec(
        id="duplicate-plugin",
        severity=Severity.MEDIUM,
        title="Duplicate plugin detected",
        description=(
            "A plugin is registered multiple times in your config. The later "
            "entry overrides the earlier one, which may cause unexpected "
            "behavior."
        ),
        remediation=_sh(r"""
# Report duplicate plugin entries (manual edit required)
echo "⚠️  Check $OPENCLAW_CONFIG for plugins listed twice in plugins.entries"
grep -o '"[^"]*"[[:space:]]*:[[:space:]]*{' "$OPENCLAW_CONFIG" 2>/dev/null | sort | uniq -d | while read -r dup; do
  echo "  Duplicate key: $dup"
done || true
echo "Remove the duplicate and keep the entry with your preferred config."
"""),
    ),
    RuleSpec(
        id="state-dir-migration",
        severity=Severity.LOW,
        title="State directory migration skipped",
        description=(
            "OpenClaw tried to migrate your state directory but the target "
            "already exists. This is usually harmless but may indicate a "
            "leftover from a previous installation."
        ),
        remediation=_sh(r"""
# Info: state directory migration was skipped
ls -la "$OPENCLAW_DIR" 2>/dev/null || true
echo "✅ No action needed unless you're experiencing config conflicts"
"""),
    ),
    RuleSpec(
        id="large-workspace-files",
        severity=Severity.MEDIUM,
        title="Large workspace loaded every session",
        description=(
            "Your workspace has many markdown files that may be loaded into "
            "context every turn, wasting tokens. Consider using progressive "
            "context loading with a small index file."
        ),
        remediation=_sh(r"""
# Report large workspace files
echo "Your workspace has many .md files. Consider:"
echo "1. Create a small MEMORY.md index that points to detailed files"
echo "2. Move old/large files to an archive/ subdirectory"
echo "3. Use .contextignore to exclude files from context loading"
echo "Files over 10KB:"
find "$OPENCLAW_WORKSPACE" -name "*.md" -size +10k -not -path "*/node_modules/*" 2>/dev/null | head -10 || true
"""),
    ),
    RuleSpec(
        id="no-compaction-config",
        severity=Severity.MEDIUM,
        title="No compaction safeguards",
        description=(
            "Your context compaction has no reserveTokensFloor configured. "
            "When the context window fills up, important context may be lost "
            "without warning."
        ),
        remediation=_sh(r"""
# Set compaction safeguards
oc_config_set "$OPENCLAW_CONFIG" '.agents.defaults.compaction.mode = "safeguard" |
  .agents.defaults.compaction.reserveTokensFloor = 32000'
echo "✅ Compaction safeguard enabled (32K token reserve)"
"""),
    ),
    RuleSpec(
        id="missing-agents-md",
        severity=Severity.LOW,
        title="No AGENTS.md found",
        description=(
            "AGENTS.md provides instructions for your agent on how to use the "
            "workspace, handle memory, and behave in different contexts. "
            "Without it, your agent lacks operational guidance."
        ),
        remediation=_sh(r"""
# Create a basic AGENTS.md (kept if one already exists)
mkdir -p "$OPENCLAW_WORKSPACE"
if [ ! -f "$OPENCLAW_WORKSPACE/AGENTS.md" ]; then
  cat > "$OPENCLAW_WORKSPACE/AGENTS.md" << 'AGENTS'
# AGENTS.md - Workspace Instructions

## Every Session
1. Read SOUL.md — this is who you are
2. Read memory/ files for recent context

## Memory
- Daily notes: memory/YYYY-MM-DD.md
- Long-term: MEMORY.md

## Safety
- Don't run destructive commands without asking
- trash > rm
AGENTS
  echo "✅ Created basic AGENTS.md at $OPENCLAW_WORKSPACE/AGENTS.md"
else
  echo "✅ AGENTS.md already present"
fi
"""),
    ),
    RuleSpec(
        id="heartbeat-no-model-override",
        severity=Severity.LOW,
        title="Heartbeat using expensive model",
        description=(
            "Your heartbeat is not configured with a cheaper model override. "
            "Heartbeats run frequently and don't need the most powerful model "
            "— using a smaller model saves significant token costs."
        ),
        remediation=_sh(r"""
# Use a cheaper model for heartbeats
oc_config_set "$OPENCLAW_CONFIG" '.agents.defaults.heartbeat.model = "anthropic/claude-sonnet-4-6"'
echo "✅ Heartbeat model set to Sonnet (cheaper than default)"
"""),
    ),
    RuleSpec(
        id="session-transcript-not-indexed",
        severity=Severity.LOW,
        title="Session transcripts not indexed for search",
        description=(
            "Enabling session transcript indexing improves memory recall by "
            "making past conversation content searchable."
        ),
        remediation=_sh(r"""
# Enable session transcript indexing
oc_config_set "$OPENCLAW_CONFIG" '.agents.defaults.memorySearch.sessionTranscripts.enabled = true'
echo "✅ Session transcript indexing enabled"
"""),
    ),
    RuleSpec(
        id="high-token-usage",
        severity=Severity.MEDIUM,
        title="High token consumption detected",
        description=(
            "Your configuration may be causing excessive token usage. Common "
            "causes: no context pruning, large workspace files being loaded "
            "every turn, or aggressive heartbeat intervals."
        ),
        remediation=_sh(r"""
# Reduce token usage: 30 minute heartbeat on a cheaper model
oc_config_set "$OPENCLAW_CONFIG" '.agents.defaults.heartbeat.every = "30m" |
  .agents.defaults.heartbeat.model = "anthropic/claude-sonnet-4-6"'
echo "✅ Token usage optimized (30min heartbeat + Sonnet model)"
"""),
    ),
    RuleSpec(
        id="auto-update-restart-loop",
        severity=Severity.CRITICAL,
        title="Auto-update causing gateway restart loop",
        description=(
            "When update.auto.enabled is true, the gateway detects a new "
            "version on boot, triggers a config reload, SIGTERMs itself, then "
            "repeats on restart — creating a crash loop. The OS service "
            "manager (launchd/systemd) backs off after rapid failures, leaving "
            "the gateway dead for hours."
        ),
        remediation=_sh(r"""
# Disable auto-update (causes restart loops)
oc_config_set "$OPENCLAW_CONFIG" '.update.auto.enabled = false'
echo "✅ Auto-update disabled — use 'openclaw update' manually when ready"
"""),
    ),
    RuleSpec(
        id="auto-update-enabled-warning",
        severity=Severity.MEDIUM,
        title="Auto-update is enabled (risk of restart loops)",
        description=(
            "Auto-update is enabled in your config. This can cause the gateway "
            "to restart unexpectedly when a new version is detected, "
            "especially combined with plugin config reloads. Recommend manual "
            "updates instead."
        ),
        remediation=_sh(r"""
# Disable auto-update for stability
oc_config_set "$OPENCLAW_CONFIG" '.update.auto.enabled = false'
echo "✅ Auto-update disabled — run 'openclaw update' manually"
"""),
    ),
    RuleSpec(
        id="config-reload-sigterm-cascade",
        severity=Severity.HIGH,
        title="Config reload triggering gateway restarts",
        description=(
            "Plugin re-registration (especially Mem0) modifies config fields "
            "like plugins.installs.*.resolvedAt, triggering config reload "
            "evaluations. If the reload causes a gateway restart (SIGTERM), "
            "this cascades — especially when combined with auto-update."
        ),
        remediation=_sh(r"""
# Break the reload -> restart -> re-register cycle
oc_config_set "$OPENCLAW_CONFIG" '.update.auto.enabled = false'
echo "✅ Config reload cascade mitigated"
echo "ℹ️  If this recurs, check which plugin is modifying config on startup"
"""),
    ),
    RuleSpec(
        id="gateway-extended-downtime",
        severity=Severity.CRITICAL,
        title="Gateway was down for extended period",
        description=(
            "After a crash loop, the OS service manager (launchd on macOS, "
            "systemd on Linux) applies exponential backoff on restarts. This "
            "can leave the gateway dead for hours without the user knowing. "
            "No heartbeats, cron jobs, or monitoring runs during downtime."
        ),
        remediation=_sh(r"""
# Restart the gateway and show what caused the crash loop
openclaw gateway restart || true
sleep 3
openclaw gateway status || true
echo "⚠️  Check what caused the crash loop: tail -50 $OPENCLAW_LOG_DIR/gateway.err.log"
echo "Common causes: auto-update restart loop, port conflict, plugin crash on startup"
"""),
    ),
    RuleSpec(
        id="service-crashed",
        severity=Severity.HIGH,
        title="Service manager reports the gateway crashed",
        description=(
            "launchd or systemd reports that the gateway service exited with "
            "an error and is not running. The service manager may back off "
            "before trying again."
        ),
        remediation=_sh(r"""
# Show recent gateway errors, then restart through the service manager
tail -20 "$OPENCLAW_LOG_DIR/gateway.err.log" 2>/dev/null || true
if command -v systemctl >/dev/null 2>&1; then
  systemctl reset-failed openclaw-gateway 2>/dev/null || true
fi
openclaw gateway restart || echo "⚠️  Gateway did not start. Run: openclaw gateway restart"
echo "✅ Gateway service restarted"
"""),
    ),
    RuleSpec(
        id="browser-relay-handshake-spam",
        severity=Severity.MEDIUM,
        title="Browser Relay extension spamming invalid handshakes",
        description=(
            "The OpenClaw Browser Relay Chrome extension is repeatedly trying "
            "to connect with invalid WebSocket handshakes (~every 2 seconds). "
            "This bloats gateway.err.log to 200MB+ and makes it hard to find "
            "real errors."
        ),
        remediation=_sh(r"""
# Stop Browser Relay handshake spam
echo "The OpenClaw Browser Relay Chrome extension is failing to authenticate."
echo "  1. Configure the extension with your gateway token (extension icon -> Settings)"
echo "  2. Or remove the extension if you don't need it"
if [ -f "$OPENCLAW_LOG_DIR/gateway.err.log" ]; then
  tail -1000 "$OPENCLAW_LOG_DIR/gateway.err.log" > "$OPENCLAW_LOG_DIR/gateway.err.log.trim" && \
    mv "$OPENCLAW_LOG_DIR/gateway.err.log.trim" "$OPENCLAW_LOG_DIR/gateway.err.log"
  echo "✅ Error log truncated (kept last 1000 lines)"
fi
"""),
    ),
    RuleSpec(
        id="matrix-sync-timeout-spam",
        severity=Severity.LOW,
        title="Matrix sync timeouts spamming error log",
        description=(
            "Matrix provider sync calls are failing with ESOCKETTIMEDOUT "
            "repeatedly. Usually caused by network issues or Matrix homeserver "
            "downtime. Not critical but clutters logs."
        ),
        remediation=_sh(r"""
# Info: Matrix sync timeouts detected
echo "Matrix homeserver sync is timing out repeatedly. This is usually transient."
echo "  Check connectivity: curl -s https://matrix.org/_matrix/client/versions"
echo "  If you don't use Matrix, set channels.matrix.enabled = false in openclaw.json"
"""),
    ),
    RuleSpec(
        id="oversized-error-log",
        severity=Severity.MEDIUM,
        title="Error log is very large",
        description=(
            "gateway.err.log has grown very large (50MB+), likely due to "
            "repeated errors like browser relay spam or Matrix timeouts. This "
            "wastes disk space and makes log analysis slow."
        ),
        remediation=_sh(r"""
# Truncate oversized error log (keep last 5000 lines)
if [ -f "$OPENCLAW_LOG_DIR/gateway.err.log" ]; then
  tail -5000 "$OPENCLAW_LOG_DIR/gateway.err.log" > "$OPENCLAW_LOG_DIR/gateway.err.log.trim" && \
    mv "$OPENCLAW_LOG_DIR/gateway.err.log.trim" "$OPENCLAW_LOG_DIR/gateway.err.log"
  echo "✅ Error log truncated"
fi
echo "Find the source of log spam: tail -100 $OPENCLAW_LOG_DIR/gateway.err.log | sort | uniq -c | sort -rn | head -5"
"""),
    ),
)


def get_rule(rule_id: str) -> RuleSpec:
    """Return a rule by id, or raise ValueError."""
    for rule in RULES:
        if rule.id == rule_id:
            return rule
    raise ValueError(f"Unknown rule: {rule_id!r}")


def rule_ids() -> list[str]:
    return [rule.id for rule in RULES]
