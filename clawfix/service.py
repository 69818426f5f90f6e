"""Request handlers for the diagnosis service.

Framework-free: each handler takes plain values and returns a Response,
so any HTTP layer (or the CLI) can sit in front of it. Every result that
leaves a handler goes through ``DiagnosisResult.public_view()``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import clawfix
from clawfix.config import Settings
from clawfix.core.augmenter import Augmenter
from clawfix.core.llm import LLMClient
from clawfix.core.models import Feedback
from clawfix.core.pipeline import DiagnosisError, DiagnosisPipeline
from clawfix.core.snapshot import InvalidSnapshotError
from clawfix.data.background import BackgroundWriter
from clawfix.data.results import ResultStore
from clawfix.data.stats import PatternStatsTracker
from clawfix.data.store import DataStore

logger = logging.getLogger(__name__)

ISSUE_TRACKER_HINT = (
    "If this persists, report at https://github.com/arcabotai/clawfix/issues"
)
SCRIPT_CONTENT_TYPE = "text/plain; charset=utf-8"


@dataclass
class Response:
    status: int
    body: Any
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def request_source(user_agent: Optional[str]) -> str:
    return "npx" if user_agent and "node" in user_agent else "curl"


class DiagnosisService:
    """Wires the pipeline, result store and statistics together."""

    def __init__(
        self,
        pipeline: DiagnosisPipeline,
        results: ResultStore,
        tracker: PatternStatsTracker,
        settings: Optional[Settings] = None,
        writer: Optional[BackgroundWriter] = None,
        backend: Optional[DataStore] = None,
    ):
        self.pipeline = pipeline
        self.results = results
        self.tracker = tracker
        self.settings = settings or Settings()
        self.writer = writer
        self.backend = backend
        self._started = time.monotonic()

    # ── Handlers ─────────────────────────────────────────────────────

    def diagnose(self, payload: Any, user_agent: Optional[str] = None) -> Response:
        try:
            result = self.pipeline.diagnose(payload, source=request_source(user_agent))
        except InvalidSnapshotError as e:
            return Response(400, {"error": str(e), "hint": e.hint})
        except DiagnosisError as e:
            return Response(
                500,
                {
                    "error": "Diagnosis failed",
                    "message": str(e),
                    "hint": ISSUE_TRACKER_HINT,
                },
            )
        return Response(200, result.public_view())

    def get_fix(
        self, fix_id: str, accept: Optional[str] = None, fmt: Optional[str] = None
    ) -> Response:
        result = self.results.get(fix_id)
        if result is None:
            return Response(404, {"error": "Fix not found or expired"})

        if accept == "text/plain" or fmt == "script":
            return Response(
                200,
                result.fix_script or "",
                {
                    "Content-Type": SCRIPT_CONTENT_TYPE,
                    "Content-Disposition": f'attachment; filename="clawfix-{fix_id}.sh"',
                },
            )
        return Response(200, result.public_view())

    def feedback(
        self,
        fix_id: str,
        body: Optional[dict[str, Any]] = None,
        query: Optional[dict[str, str]] = None,
    ) -> Response:
        """Always acknowledged, whether or not ``fix_id`` is known."""
        fb = Feedback.from_request(fix_id, body, query)
        self.tracker.record_feedback(
            fb.fix_id, fb.success, fb.issues_remaining, fb.comment
        )
        return Response(200, {"received": True, "fixId": fix_id, "success": fb.success})

    def stats(self) -> Response:
        body = self.tracker.summary(cache_size=len(self.results))
        body.update({
            "uptime": round(time.monotonic() - self._started, 3),
            "version": clawfix.__version__,
            "aiProvider": self.settings.ai_provider,
            "aiModel": self.settings.ai_model,
            "aiAvailable": self.pipeline.augmenter.available,
        })
        return Response(200, body)

    # ── Lifecycle ────────────────────────────────────────────────────

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued durable writes."""
        return self.writer.drain(timeout) if self.writer else True

    def close(self) -> None:
        if self.writer:
            self.writer.shutdown(wait=True)
        if self.backend:
            self.backend.close()


def _build_augmenter(settings: Settings) -> Augmenter:
    if not settings.ai_available:
        return Augmenter()
    try:
        client = LLMClient(
            model=settings.ai_model,
            provider=settings.ai_provider,
            api_key=settings.ai_api_key,
            base_url=settings.ai_base_url,
            timeout=settings.ai_timeout,
            max_tokens=settings.ai_max_tokens,
        )
    except (ImportError, ValueError) as e:
        logger.warning("AI analysis disabled: %s", e)
        return Augmenter()
    return Augmenter(client)


def build_service(
    settings: Settings, backend: Optional[DataStore] = None
) -> DiagnosisService:
    """Create the process-wide service. Call once at startup."""
    if backend is None and settings.persistent:
        try:
            backend = DataStore(settings.db_path)
        except Exception as e:
            logger.warning("Persistence disabled, cannot open %s: %s", settings.db_path, e)
            backend = None

    writer = BackgroundWriter()
    results = ResultStore(backend, capacity=settings.cache_capacity, writer=writer)
    tracker = PatternStatsTracker(backend, writer=writer, results=results)
    pipeline = DiagnosisPipeline(
        _build_augmenter(settings),
        results,
        tracker,
        feedback_url=settings.public_url,
    )
    return DiagnosisService(
        pipeline, results, tracker, settings=settings, writer=writer, backend=backend
    )
