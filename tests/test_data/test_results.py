"""Tests for clawfix.data.results.ResultStore."""

from __future__ import annotations

from unittest.mock import MagicMock

from clawfix.core.models import Outcome
from clawfix.data.results import ResultStore


class TestResultStore:
    def test_new_id(self):
        ids = {ResultStore.new_id() for _ in range(100)}
        assert len(ids) == 100
        assert all(len(i) == 12 for i in ids)

    def test_put_then_get(self, result_factory):
        store = ResultStore()
        result = result_factory()
        store.put(result)
        assert store.get(result.fix_id).public_view() == result.public_view()

    def test_unknown_id(self):
        assert ResultStore().get("missing") is None

    def test_evicted_result_served_from_backend(self, temp_db, writer, result_factory):
        store = ResultStore(temp_db, capacity=1, writer=writer)
        first = result_factory(fix_id="first")
        store.put(first)
        store.put(result_factory(fix_id="second"))
        assert writer.drain(timeout=5)

        assert store.peek("first") is None
        loaded = store.get("first")
        assert loaded.public_view() == first.public_view()
        # Backend hits are cached again
        assert store.peek("first") is not None

    def test_backend_error_is_a_miss(self, result_factory):
        backend = MagicMock()
        backend.get_diagnosis.side_effect = RuntimeError("database is locked")
        store = ResultStore(backend)
        assert store.get("anything") is None

    def test_save_failure_keeps_cache(self, writer, result_factory):
        backend = MagicMock()
        backend.save_diagnosis.side_effect = RuntimeError("disk full")
        store = ResultStore(backend, writer=writer)
        store.put(result_factory())
        assert writer.drain(timeout=5)
        assert store.get("abc123def456") is not None

    def test_record_outcome(self, result_factory):
        store = ResultStore()
        store.put(result_factory())
        store.record_outcome("abc123def456", success=True)
        assert store.peek("abc123def456").outcome is Outcome.SUCCESS
        store.record_outcome("missing", success=False)

    def test_len(self, result_factory):
        store = ResultStore(capacity=2)
        for i in range(3):
            store.put(result_factory(fix_id=str(i)))
        assert len(store) == 2
