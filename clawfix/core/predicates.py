"""Detection predicates for the known-issue rules.

Each predicate is a pure function of a Snapshot. Predicates never look at
each other's results; shared signals (gateway liveness) come from plain
helper functions over the snapshot.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from enum import Enum
from typing import Callable, Optional

from clawfix.core.rules import RULES, RuleSpec
from clawfix.core.service_state import ServiceState, service_state
from clawfix.core.snapshot import Snapshot

Predicate = Callable[[Snapshot], bool]

# Thresholds
LARGE_ERROR_LOG_MB = 50
HANDSHAKE_SPAM_MIN_LINES = 5
MATRIX_TIMEOUT_MIN_LINES = 3
SIGTERM_LOOP_MIN = 2
RESTART_LOOP_MIN = 3
CONFIG_RELOAD_LOOP_MIN = 3
LARGE_WORKSPACE_MD_FILES = 100
HEARTBEAT_MIN_INTERVAL_MINUTES = 30
DOWNTIME_MIN_RUNS = 2
DOWNTIME_MAX_UPTIME_SECONDS = 300

_RUNNING_STATUS = re.compile(r"running.*pid|state active|listening", re.I)
_STOPPED_STATUS = re.compile(r"not running|failed to start|stopped|inactive", re.I)
_WARNING_STATUS = re.compile(r"warning", re.I)
_NO_PID_VALUES = (None, "", "none")

_EADDRINUSE = re.compile(r"EADDRINUSE", re.I)
_BROWSER_PORT = re.compile(
    r"18791.*EADDRINUSE|browser.*control.*fail|browser.*service.*start", re.I
)
_GGML_METAL = re.compile(r"GGML_ASSERT.*ggml-metal|ggml-metal.*ASSERT", re.I)
_ORPHAN_TOOL = re.compile(r"tool_call_id.*not found|orphan.*tool", re.I)
_DUPLICATE_PLUGIN = re.compile(r"duplicate plugin id detected", re.I)
_STATE_DIR_MIGRATION = re.compile(r"State dir migration skipped", re.I)
_SIGTERM = re.compile(r"signal SIGTERM received", re.I)
_RESTART = re.compile(r"listening.*PID", re.I)
_CONFIG_RELOAD = re.compile(r"config change detected.*evaluating reload", re.I)
_RELOAD_THEN_SIGTERM = re.compile(
    r"config change detected.*evaluating reload[\s\S]{0,500}signal SIGTERM received",
    re.I,
)
_HANDSHAKE = re.compile(
    r"invalid handshake.*chrome-extension|closed before connect.*chrome-extension",
    re.I,
)
_SOCKET_TIMEOUT = re.compile(r"ESOCKETTIMEDOUT", re.I)
_MINUTES = re.compile(r"^(\d+)m$")


# ── Shared signals ───────────────────────────────────────────────────


class Liveness(Enum):
    UP = "up"
    ZOMBIE = "zombie"
    DOWN = "down"


def gateway_liveness(snap: Snapshot) -> Optional[Liveness]:
    """Classify the gateway as up, zombie or cleanly down.

    Returns None when the snapshot has no ``openclaw`` section at all.
    """
    if snap.section("openclaw") is None:
        return None

    process_exists = snap.flag("openclaw", "processExists")
    port_listening = snap.flag("openclaw", "portListening")
    if process_exists is True and port_listening is False:
        return Liveness.ZOMBIE

    status = snap.text("openclaw", "gatewayStatus")
    if _RUNNING_STATUS.search(status):
        return Liveness.UP
    if process_exists is False and port_listening is False:
        return Liveness.DOWN
    if _STOPPED_STATUS.search(status):
        return Liveness.DOWN
    if (
        snap.get("openclaw", "gatewayPid") in _NO_PID_VALUES
        and process_exists is not True
        and not _WARNING_STATUS.search(status)
    ):
        return Liveness.DOWN
    return Liveness.UP


def _error_logs(snap: Snapshot) -> str:
    return snap.text("logs", "errors")


def _gateway_logs(snap: Snapshot) -> str:
    return snap.text("logs", "errors") + snap.text("logs", "gatewayLog")


def _stderr_or_errors(snap: Snapshot) -> str:
    return snap.text("logs", "stderr") or snap.text("logs", "errors")


def _count(pattern: re.Pattern[str], text: str) -> int:
    return len(pattern.findall(text))


def _defaults(snap: Snapshot, *path: str):
    return snap.get("config", "agents", "defaults", *path)


def _soul_missing(snap: Snapshot) -> bool:
    return snap.flag("workspace", "hasSoul") is not True


# ── Predicates ───────────────────────────────────────────────────────


def mem0_graph_free(snap: Snapshot) -> bool:
    entries = snap.get("config", "plugins", "entries")
    if not isinstance(entries, Mapping):
        return False
    for entry in entries.values():
        if not isinstance(entry, Mapping):
            continue
        config = entry.get("config")
        if isinstance(config, Mapping) and config.get("enableGraph") is True:
            return True
    return False


def gateway_not_running(snap: Snapshot) -> bool:
    return gateway_liveness(snap) is Liveness.DOWN


def gateway_zombie(snap: Snapshot) -> bool:
    return gateway_liveness(snap) is Liveness.ZOMBIE


def port_conflict(snap: Snapshot) -> bool:
    return bool(_EADDRINUSE.search(_error_logs(snap)))


def browser_port_binding(snap: Snapshot) -> bool:
    return bool(_BROWSER_PORT.search(_error_logs(snap)))


def no_hybrid_search(snap: Snapshot) -> bool:
    return not _defaults(snap, "memorySearch", "query", "hybrid", "enabled")


def no_context_pruning(snap: Snapshot) -> bool:
    return not _defaults(snap, "contextPruning")


def no_memory_flush(snap: Snapshot) -> bool:
    return not _defaults(snap, "compaction", "memoryFlush", "enabled")


def no_soul(snap: Snapshot) -> bool:
    return _soul_missing(snap)


def no_memory_files(snap: Snapshot) -> bool:
    return snap.number("workspace", "memoryFiles") == 0


def ggml_metal_crash(snap: Snapshot) -> bool:
    logs = snap.text("logs", "errors") + snap.text("logs", "stderr")
    return bool(_GGML_METAL.search(logs))


def orphan_tool_calls(snap: Snapshot) -> bool:
    return bool(_ORPHAN_TOOL.search(_error_logs(snap)))


# The two status-string rules below depend on wording printed by
# `openclaw gateway status`; there is no structured field for them yet.
def duplicate_plugin(snap: Snapshot) -> bool:
    return bool(_DUPLICATE_PLUGIN.search(snap.text("openclaw", "gatewayStatus")))


def state_dir_migration(snap: Snapshot) -> bool:
    return bool(
        _STATE_DIR_MIGRATION.search(snap.text("openclaw", "gatewayStatus"))
    )


def large_workspace_files(snap: Snapshot) -> bool:
    md_files = snap.number("workspace", "mdFiles") or 0
    return md_files > LARGE_WORKSPACE_MD_FILES and _soul_missing(snap)


def no_compaction_config(snap: Snapshot) -> bool:
    compaction = _defaults(snap, "compaction")
    if not isinstance(compaction, Mapping):
        return True
    return not compaction.get("reserveTokensFloor") and not compaction.get("mode")


def missing_agents_md(snap: Snapshot) -> bool:
    return snap.flag("workspace", "hasAgents") is not True


def heartbeat_no_model_override(snap: Snapshot) -> bool:
    heartbeat = _defaults(snap, "heartbeat")
    if not isinstance(heartbeat, Mapping):
        return False
    return bool(heartbeat.get("every")) and not heartbeat.get("model")


def session_transcript_not_indexed(snap: Snapshot) -> bool:
    return not _defaults(snap, "memorySearch", "sessionTranscripts", "enabled")


def high_token_usage(snap: Snapshot) -> bool:
    if _defaults(snap, "contextPruning"):
        return False
    every = _defaults(snap, "heartbeat", "every")
    if not isinstance(every, str):
        return False
    match = _MINUTES.match(every)
    return bool(match) and int(match.group(1)) < HEARTBEAT_MIN_INTERVAL_MINUTES


def _auto_update_enabled(snap: Snapshot) -> bool:
    return snap.flag("config", "update", "auto", "enabled") is True


def auto_update_restart_loop(snap: Snapshot) -> bool:
    if not _auto_update_enabled(snap):
        return False
    logs = _gateway_logs(snap)
    sigterms = max(_count(_SIGTERM, logs), snap.number("logs", "sigtermCount") or 0)
    restarts = _count(_RESTART, logs)
    return sigterms >= SIGTERM_LOOP_MIN or restarts >= RESTART_LOOP_MIN


def auto_update_enabled_warning(snap: Snapshot) -> bool:
    return _auto_update_enabled(snap)


def config_reload_sigterm_cascade(snap: Snapshot) -> bool:
    logs = _gateway_logs(snap)
    if _RELOAD_THEN_SIGTERM.search(logs):
        return True
    return _count(_CONFIG_RELOAD, logs) >= CONFIG_RELOAD_LOOP_MIN


def gateway_extended_downtime(snap: Snapshot) -> bool:
    # service.runs / nRestarts / uptimeSeconds are not sent by the current
    # collector, so this rule stays dormant until it does.
    uptime = snap.number("service", "uptimeSeconds")
    if uptime is None or uptime >= DOWNTIME_MAX_UPTIME_SECONDS:
        return False
    runs = snap.number("service", "runs")
    if runs is not None and runs > DOWNTIME_MIN_RUNS:
        return True
    restarts = snap.number("service", "nRestarts")
    return restarts is not None and restarts > 0


def service_crashed(snap: Snapshot) -> bool:
    return service_state(snap) in (ServiceState.CRASHED, ServiceState.FAILED)


def browser_relay_handshake_spam(snap: Snapshot) -> bool:
    lines = _count(_HANDSHAKE, _stderr_or_errors(snap))
    counted = snap.number("logs", "handshakeTimeoutCount") or 0
    return max(lines, counted) >= HANDSHAKE_SPAM_MIN_LINES


def matrix_sync_timeout_spam(snap: Snapshot) -> bool:
    return _count(_SOCKET_TIMEOUT, _stderr_or_errors(snap)) >= MATRIX_TIMEOUT_MIN_LINES


def oversized_error_log(snap: Snapshot) -> bool:
    return (snap.number("logs", "errLogSizeMB") or 0) >= LARGE_ERROR_LOG_MB


PREDICATES: dict[str, Predicate] = {
    "mem0-graph-free": mem0_graph_free,
    "gateway-not-running": gateway_not_running,
    "gateway-zombie": gateway_zombie,
    "port-conflict": port_conflict,
    "browser-port-binding": browser_port_binding,
    "no-hybrid-search": no_hybrid_search,
    "no-context-pruning": no_context_pruning,
    "no-memory-flush": no_memory_flush,
    "no-soul": no_soul,
    "no-memory-files": no_memory_files,
    "ggml-metal-crash": ggml_metal_crash,
    "orphan-tool-calls": orphan_tool_calls,
    "duplicate-plugin": duplicate_plugin,
    "state-dir-migration": state_dir_migration,
    "large-workspace-files": large_workspace_files,
    "no-compaction-config": no_compaction_config,
    "missing-agents-md": missing_agents_md,
    "heartbeat-no-model-override": heartbeat_no_model_override,
    "session-transcript-not-indexed": session_transcript_not_indexed,
    "high-token-usage": high_token_usage,
    "auto-update-restart-loop": auto_update_restart_loop,
    "auto-update-enabled-warning": auto_update_enabled_warning,
    "config-reload-sigterm-cascade": config_reload_sigterm_cascade,
    "gateway-extended-downtime": gateway_extended_downtime,
    "service-crashed": service_crashed,
    "browser-relay-handshake-spam": browser_relay_handshake_spam,
    "matrix-sync-timeout-spam": matrix_sync_timeout_spam,
    "oversized-error-log": oversized_error_log,
}


def missing_predicates(
    rules: tuple[RuleSpec, ...] = RULES,
    predicates: Optional[dict[str, Predicate]] = None,
) -> list[str]:
    """Rule ids that have no predicate."""
    predicates = PREDICATES if predicates is None else predicates
    return [r.id for r in rules if r.id not in predicates]


def orphan_predicates(
    rules: tuple[RuleSpec, ...] = RULES,
    predicates: Optional[dict[str, Predicate]] = None,
) -> list[str]:
    """Predicate ids that no rule declares."""
    predicates = PREDICATES if predicates is None else predicates
    declared = {r.id for r in rules}
    return [rule_id for rule_id in predicates if rule_id not in declared]
