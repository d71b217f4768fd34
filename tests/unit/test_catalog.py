"""Tests for the schema catalog cache and job polling (etlgen/catalog.py)."""

import threading
import time

import pytest

from etlgen.catalog import SchemaCatalog, job_fetcher, poll_job
from etlgen.errors import SchemaFetchError


PAYLOAD = {"tables": [{"schema": "dbo", "tableName": "Customer", "columns": [{"name": "Id", "dataType": "int"}]}]}


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class CountingFetcher:
    def __init__(self, payload=PAYLOAD) -> None:
        self.payload = payload
        self.calls: list[str] = []

    def __call__(self, connection_id: str):
        self.calls.append(connection_id)
        return self.payload


class TestSchemaCatalog:

    def test_fetch_normalizes_payload(self):
        catalog = SchemaCatalog(CountingFetcher())
        schema = catalog.fetch_schema("conn-1")
        assert schema.tables[0].full_name == "dbo.Customer"

    def test_second_fetch_is_cached(self):
        fetcher = CountingFetcher()
        catalog = SchemaCatalog(fetcher)
        first = catalog.fetch_schema("conn-1")
        assert catalog.fetch_schema("conn-1") is first
        assert fetcher.calls == ["conn-1"]

    def test_entries_are_per_connection(self):
        fetcher = CountingFetcher()
        catalog = SchemaCatalog(fetcher)
        catalog.fetch_schema("a")
        catalog.fetch_schema("b")
        assert fetcher.calls == ["a", "b"]

    def test_entry_expires_after_ttl(self):
        clock = FakeClock()
        fetcher = CountingFetcher()
        catalog = SchemaCatalog(fetcher, ttl_seconds=300, clock=clock)
        catalog.fetch_schema("conn-1")
        clock.now = 299.0
        catalog.fetch_schema("conn-1")
        clock.now = 300.0
        catalog.fetch_schema("conn-1")
        assert len(fetcher.calls) == 2

    def test_invalidate_one(self):
        fetcher = CountingFetcher()
        catalog = SchemaCatalog(fetcher)
        catalog.fetch_schema("a")
        catalog.fetch_schema("b")
        catalog.invalidate("a")
        catalog.fetch_schema("a")
        catalog.fetch_schema("b")
        assert fetcher.calls == ["a", "b", "a"]

    def test_invalidate_all(self):
        fetcher = CountingFetcher()
        catalog = SchemaCatalog(fetcher)
        catalog.fetch_schema("a")
        catalog.fetch_schema("b")
        catalog.invalidate()
        catalog.fetch_schema("a")
        assert fetcher.calls == ["a", "b", "a"]

    def test_fetcher_error_is_wrapped(self):
        def broken(connection_id):
            raise ConnectionError("network down")

        catalog = SchemaCatalog(broken)
        with pytest.raises(SchemaFetchError, match="network down") as exc_info:
            catalog.fetch_schema("conn-9")
        assert exc_info.value.connection_id == "conn-9"

    def test_unrecognized_payload_raises(self):
        catalog = SchemaCatalog(CountingFetcher({"rows": []}))
        with pytest.raises(SchemaFetchError) as exc_info:
            catalog.fetch_schema("conn-2")
        assert exc_info.value.connection_id == "conn-2"

    def test_failures_are_not_cached(self):
        fetcher = CountingFetcher({"success": False, "error": "agent offline"})
        catalog = SchemaCatalog(fetcher)
        for _ in range(2):
            with pytest.raises(SchemaFetchError):
                catalog.fetch_schema("conn-3")
        assert len(fetcher.calls) == 2

    def test_fetch_or_none_fails_open(self):
        catalog = SchemaCatalog(CountingFetcher({"success": False, "error": "agent offline"}))
        assert catalog.fetch_schema_or_none("conn-3") is None

    def test_fetch_or_none_without_id(self):
        fetcher = CountingFetcher()
        assert SchemaCatalog(fetcher).fetch_schema_or_none(None) is None
        assert fetcher.calls == []

    def test_concurrent_misses_fetch_once(self):
        release = threading.Event()
        calls: list[str] = []

        def slow(connection_id):
            calls.append(connection_id)
            release.wait(timeout=5)
            return PAYLOAD

        catalog = SchemaCatalog(slow)
        results = []
        threads = [threading.Thread(target=lambda: results.append(catalog.fetch_schema("conn-1"))) for _ in range(4)]
        for t in threads:
            t.start()
        time.sleep(0.05)
        release.set()
        for t in threads:
            t.join(timeout=5)

        assert calls == ["conn-1"]
        assert len(results) == 4
        assert all(r is results[0] for r in results)
        assert catalog._inflight == {}

    def test_fetch_locks_released_per_connection(self):
        catalog = SchemaCatalog(CountingFetcher())
        for i in range(50):
            catalog.fetch_schema(f"conn-{i}")
        assert catalog._inflight == {}

    def test_fetch_lock_released_after_failure(self):
        catalog = SchemaCatalog(CountingFetcher({"rows": []}))
        with pytest.raises(SchemaFetchError):
            catalog.fetch_schema("conn-4")
        assert catalog._inflight == {}


class TestPollJob:

    def test_returns_result_when_done(self):
        states = iter([{"status": "pending"}, {"status": "running"}, {"status": "completed", "result": PAYLOAD}])
        sleeps: list[float] = []
        result = poll_job(lambda job_id: next(states), "job-1", interval=0.5, sleep=sleeps.append)
        assert result == PAYLOAD
        assert sleeps == [0.5, 0.5]

    def test_result_data_key(self):
        result = poll_job(lambda job_id: {"status": "success", "result_data": {"x": 1}}, "job-1", sleep=lambda s: None)
        assert result == {"x": 1}

    def test_failed_job_raises(self):
        with pytest.raises(SchemaFetchError, match="permission denied"):
            poll_job(lambda job_id: {"status": "failed", "error": "permission denied"}, "job-1", sleep=lambda s: None)

    def test_timeout(self):
        clock = FakeClock()

        def advance(seconds):
            clock.now += seconds

        with pytest.raises(SchemaFetchError, match="did not finish"):
            poll_job(lambda job_id: {"status": "running"}, "job-1", interval=1.0, timeout=3.0, sleep=advance, clock=clock)
        assert clock.now == 3.0

    def test_cancel(self):
        cancel = threading.Event()
        cancel.set()
        calls: list[str] = []

        def get_job(job_id):
            calls.append(job_id)
            return {"status": "running"}

        with pytest.raises(SchemaFetchError, match="cancelled"):
            poll_job(get_job, "job-1", cancel=cancel, sleep=lambda s: None)
        assert calls == []


class TestJobFetcher:

    def test_submit_then_poll(self):
        submitted: list[str] = []

        def submit(connection_id):
            submitted.append(connection_id)
            return f"job-for-{connection_id}"

        def get_job(job_id):
            assert job_id == "job-for-agent-7"
            return {"status": "completed", "result": PAYLOAD}

        catalog = SchemaCatalog(job_fetcher(submit, get_job, sleep=lambda s: None))
        schema = catalog.fetch_schema("agent-7")
        assert submitted == ["agent-7"]
        assert schema.total_columns == 1
