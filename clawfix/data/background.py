"""Fire-and-forget executor for durable writes."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class BackgroundWriter:
    """Runs storage writes off the request path, one at a time.

    A single worker keeps writes in submission order. Failures are logged
    at warning and dropped; nothing is ever raised to the submitter.
    """

    def __init__(self, name: str = "clawfix-writer"):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._pending: set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False

    def submit(
        self, fn: Callable[..., Any], *args: Any, description: str = "write"
    ) -> Optional[Future]:
        with self._lock:
            if self._closed:
                logger.warning("Background writer closed, dropping %s", description)
                return None
            future = self._executor.submit(self._run, fn, args, description)
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _run(self, fn: Callable[..., Any], args: tuple, description: str) -> None:
        try:
            fn(*args)
        except Exception as e:
            logger.warning("Background %s failed: %s", description, e)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued work. Returns False if the timeout expired."""
        with self._lock:
            pending = list(self._pending)
        for future in pending:
            try:
                future.result(timeout=timeout)
            except FutureTimeoutError:
                return False
        return True

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)
