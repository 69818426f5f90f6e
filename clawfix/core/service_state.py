"""Service manager state interpretation (launchd / systemd)."""

from __future__ import annotations

from enum import Enum

from clawfix.core.snapshot import Snapshot


class ServiceState(Enum):
    RUNNING = "running"
    SIGTERM = "sigterm"
    CRASHED = "crashed"
    FAILED = "failed"
    INACTIVE = "inactive"
    NOT_REGISTERED = "not_registered"
    UNKNOWN = "unknown"


SIGTERM_EXIT_CODE = "-15"


def classify_launchd_row(pid: str, exit_code: str) -> ServiceState:
    """Classify the PID / last-exit columns of a ``launchctl list`` row."""
    if exit_code == SIGTERM_EXIT_CODE:
        return ServiceState.SIGTERM
    if exit_code == "0" and pid != "-":
        return ServiceState.RUNNING
    if pid == "-" and exit_code != "0":
        return ServiceState.CRASHED
    return ServiceState.UNKNOWN


def classify_launchd(listing: str) -> ServiceState:
    """Classify a ``launchctl list | grep openclaw`` line."""
    listing = listing.strip()
    if not listing:
        return ServiceState.NOT_REGISTERED
    parts = listing.split()
    pid = parts[0]
    exit_code = parts[1] if len(parts) > 1 else ""
    return classify_launchd_row(pid, exit_code)


def classify_systemd(status_output: str) -> ServiceState:
    """Classify the head of ``systemctl status openclaw-gateway``."""
    if "active (running)" in status_output:
        return ServiceState.RUNNING
    if "failed" in status_output:
        return ServiceState.FAILED
    if "inactive" in status_output:
        return ServiceState.INACTIVE
    return ServiceState.UNKNOWN


def service_state(snapshot: Snapshot) -> ServiceState:
    """Service state reported by the collector, or derived from raw fields."""
    reported = snapshot.text("service", "state")
    try:
        state = ServiceState(reported)
    except ValueError:
        state = ServiceState.UNKNOWN
    if state is not ServiceState.UNKNOWN:
        return state

    if snapshot.text("service", "manager") == "launchd":
        pid = snapshot.get("service", "pid")
        exit_code = snapshot.get("service", "exitCode")
        if isinstance(pid, str) and pid and isinstance(exit_code, str) and exit_code:
            return classify_launchd_row(pid, exit_code)
    return ServiceState.UNKNOWN
