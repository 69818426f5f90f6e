"""Diagnostic snapshot: a read-only, absence-tolerant view of a collector payload."""

from __future__ import annotations

import copy
import math
from collections.abc import Mapping
from typing import Any, Optional, Union

COLLECTOR_HINT = "Run the diagnostic script: curl -sSL clawfix.dev/fix | bash"

_MISSING = object()


class InvalidSnapshotError(ValueError):
    """The payload is not a usable diagnostic snapshot."""

    def __init__(self, message: str, hint: str = COLLECTOR_HINT):
        super().__init__(message)
        self.hint = hint


class Snapshot:
    """A point-in-time description of a remote OpenClaw installation.

    Every accessor assumes any branch may be absent. Absence is reported
    as ``None`` (or the caller's default), never as ``False``.
    """

    def __init__(self, data: Mapping[str, Any]):
        self._data = copy.deepcopy(dict(data))

    @classmethod
    def from_payload(cls, payload: Any) -> Snapshot:
        if not isinstance(payload, Mapping):
            raise InvalidSnapshotError("Invalid diagnostic payload")
        if not isinstance(payload.get("system"), Mapping):
            raise InvalidSnapshotError("Invalid diagnostic payload")
        return cls(payload)

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)

    # ── Tolerant accessors ───────────────────────────────────────────

    def _lookup(self, path: tuple[str, ...]) -> Any:
        node: Any = self._data
        for key in path:
            if not isinstance(node, Mapping) or key not in node:
                return _MISSING
            node = node[key]
        return node

    def get(self, *path: str, default: Any = None) -> Any:
        value = self._lookup(path)
        return default if value is _MISSING else value

    def has(self, *path: str) -> bool:
        return self._lookup(path) is not _MISSING

    def section(self, name: str) -> Optional[Mapping[str, Any]]:
        value = self.get(name)
        return value if isinstance(value, Mapping) else None

    def text(self, *path: str) -> str:
        value = self.get(*path)
        return value if isinstance(value, str) else ""

    def number(self, *path: str) -> Optional[Union[int, float]]:
        """Numeric value at ``path``. NaN and infinities count as absent."""
        value = self.get(*path)
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return value if math.isfinite(value) else None
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                try:
                    parsed = float(value.strip())
                except ValueError:
                    return None
                return parsed if math.isfinite(parsed) else None
        return None

    def flag(self, *path: str) -> Optional[bool]:
        value = self.get(*path)
        return value if isinstance(value, bool) else None

    # ── Provenance ───────────────────────────────────────────────────

    @property
    def host_hash(self) -> Optional[str]:
        return self.get("hostHash")

    @property
    def os_family(self) -> Optional[str]:
        return self.get("system", "os")

    @property
    def arch(self) -> Optional[str]:
        return self.get("system", "arch")

    @property
    def runtime_version(self) -> Optional[str]:
        return self.get("system", "nodeVersion")

    @property
    def installation_version(self) -> Optional[str]:
        return self.get("openclaw", "version")

    def __repr__(self) -> str:
        return f"Snapshot(keys={sorted(self._data)})"
