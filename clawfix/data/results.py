"""Result store: bounded cache in front of the durable backend."""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING, Optional

from clawfix.core.models import DiagnosisResult, Outcome
from clawfix.data.background import BackgroundWriter
from clawfix.data.cache import DEFAULT_CAPACITY, BoundedCache

if TYPE_CHECKING:
    from clawfix.data.store import DataStore

logger = logging.getLogger(__name__)

# token_urlsafe(9) -> 12 URL-safe characters
_ID_BYTES = 9


class ResultStore:
    """Keeps diagnosis results retrievable by id.

    ``put`` always lands in the in-memory cache before returning and queues
    the durable write on the background writer. ``get`` reads the cache,
    then the backend, and re-caches a backend hit.

    Consistency: the durable write is asynchronous. A reader in another
    process (or this one, after the entry was evicted) can miss a result
    whose write is still queued and will report it as not found. That
    window is accepted; results become visible once the write lands.
    Backend errors on either path are logged and treated as a miss, so the
    store degrades to cache-only operation.
    """

    def __init__(
        self,
        backend: Optional[DataStore] = None,
        capacity: int = DEFAULT_CAPACITY,
        writer: Optional[BackgroundWriter] = None,
    ):
        self.backend = backend
        self.cache: BoundedCache[DiagnosisResult] = BoundedCache(capacity)
        self.writer = writer or BackgroundWriter()

    @staticmethod
    def new_id() -> str:
        return secrets.token_urlsafe(_ID_BYTES)

    def put(self, result: DiagnosisResult) -> None:
        evicted = self.cache.put(result.fix_id, result)
        if evicted:
            logger.debug("Evicted %s from result cache", evicted)
        if self.backend is not None:
            self.writer.submit(
                self.backend.save_diagnosis, result, description="diagnosis save"
            )

    def peek(self, fix_id: str) -> Optional[DiagnosisResult]:
        """Cache-only lookup."""
        return self.cache.get(fix_id)

    def get(self, fix_id: str) -> Optional[DiagnosisResult]:
        result = self.cache.get(fix_id)
        if result is not None:
            return result
        if self.backend is None:
            return None

        try:
            result = self.backend.get_diagnosis(fix_id)
        except Exception as e:
            logger.warning("Durable lookup of %s failed: %s", fix_id, e)
            return None

        if result is not None:
            self.cache.put(fix_id, result)
        return result

    def record_outcome(self, fix_id: str, success: bool) -> None:
        """Attach a feedback outcome to the cached copy, if there is one."""
        result = self.cache.get(fix_id)
        if result is not None:
            result.outcome = Outcome.SUCCESS if success else Outcome.FAILED

    def __len__(self) -> int:
        return len(self.cache)
