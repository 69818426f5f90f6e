"""Diagnosis pipeline: snapshot in, stored result with fix script out."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from clawfix.core.augmenter import Augmenter
from clawfix.core.composer import DEFAULT_PUBLIC_URL, compose
from clawfix.core.detector import detect
from clawfix.core.models import DiagnosisResult, Provenance, utc_timestamp
from clawfix.core.service_state import ServiceState, service_state
from clawfix.core.snapshot import InvalidSnapshotError, Snapshot

if TYPE_CHECKING:
    from clawfix.data.results import ResultStore
    from clawfix.data.stats import PatternStatsTracker

logger = logging.getLogger(__name__)


class DiagnosisError(RuntimeError):
    """A diagnosis failed for a reason other than bad input."""


def _optional_int(value: Optional[float]) -> Optional[int]:
    return int(value) if value is not None else None


def build_provenance(snapshot: Snapshot, source: str) -> Provenance:
    state = service_state(snapshot)
    exit_code = snapshot.get("service", "exitCode")
    return Provenance(
        host_hash=snapshot.host_hash,
        os=snapshot.os_family,
        arch=snapshot.arch,
        runtime_version=snapshot.runtime_version,
        installation_version=snapshot.installation_version,
        service_manager=snapshot.get("service", "manager"),
        service_state=state.value if state is not ServiceState.UNKNOWN else None,
        service_exit_code=str(exit_code) if exit_code not in (None, "") else None,
        err_log_size_mb=_optional_int(snapshot.number("logs", "errLogSizeMB")),
        sigterm_count=_optional_int(snapshot.number("logs", "sigtermCount")),
        source=source,
    )


class DiagnosisPipeline:
    """Runs one diagnosis end to end.

    validate -> detect -> augment -> compose -> store -> count.
    Input errors surface as InvalidSnapshotError. Anything else that goes
    wrong before the result is stored becomes a DiagnosisError, and in
    that case nothing is stored.
    """

    def __init__(
        self,
        augmenter: Augmenter,
        results: ResultStore,
        tracker: PatternStatsTracker,
        feedback_url: str = DEFAULT_PUBLIC_URL,
    ):
        self.augmenter = augmenter
        self.results = results
        self.tracker = tracker
        self.feedback_url = feedback_url

    def diagnose(self, payload: Any, source: str = "cli") -> DiagnosisResult:
        snapshot = Snapshot.from_payload(payload)

        try:
            result = self._run(snapshot, source)
        except InvalidSnapshotError:
            raise
        except Exception as e:
            logger.exception("Diagnosis failed")
            raise DiagnosisError(str(e) or type(e).__name__) from e

        self.results.put(result)
        self.tracker.record_detections(result.issues)
        logger.info(
            "Diagnosis %s: %d issue(s) via %s",
            result.fix_id,
            result.issues_found,
            result.model,
        )
        return result

    def _run(self, snapshot: Snapshot, source: str) -> DiagnosisResult:
        issues = detect(snapshot)
        analysis = self.augmenter.augment(snapshot, [i.id for i in issues])

        fix_id = self.results.new_id()
        timestamp = utc_timestamp()
        script = compose(
            issues,
            analysis,
            fix_id,
            generated_at=timestamp,
            feedback_url=self.feedback_url,
        )

        return DiagnosisResult(
            fix_id=fix_id,
            timestamp=timestamp,
            issues=issues,
            analysis=analysis.summary,
            fix_script=script,
            ai_insights=analysis.insights,
            model=self.augmenter.engine,
            provenance=build_provenance(snapshot, source),
        )
