"""Schema catalog: a TTL cache in front of the upstream metadata fetch.

The catalog is an explicit service object. Callers build one with a fetcher
(any callable taking a connection id and returning a metadata payload) and
pass it to whatever needs schemas. There is no module-level cache.

    catalog = SchemaCatalog(fetcher=my_api_call, ttl_seconds=300)
    schema = catalog.fetch_schema("conn-42")
    catalog.invalidate("conn-42")

Concurrent misses for the same connection are coalesced: only one thread
calls the fetcher, the others wait and read the freshly cached entry.

Remote metadata agents answer through background jobs. ``job_fetcher``
adapts a submit/poll pair into a fetcher, and ``poll_job`` implements the
bounded poll loop (fixed interval, hard timeout, optional cancel event).
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Callable

from etlgen.errors import SchemaFetchError
from etlgen.schema import DatabaseSchema, schema_from_payload

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0

_DONE_STATUSES = {"completed", "complete", "succeeded", "success", "done"}
_FAILED_STATUSES = {"failed", "error", "cancelled", "canceled"}


class SchemaCatalog:
    """Per-connection schema cache with TTL expiry and single-flight fetches."""

    def __init__(
        self,
        fetcher: Callable[[str], Any],
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetcher = fetcher
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[DatabaseSchema, float]] = {}
        self._lock = threading.Lock()
        self._inflight: dict[str, list[Any]] = {}

    def _cached(self, connection_id: str) -> DatabaseSchema | None:
        with self._lock:
            entry = self._entries.get(connection_id)
            if entry is None:
                return None
            schema, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[connection_id]
                return None
            return schema

    @contextmanager
    def _key_lock(self, connection_id: str) -> Iterator[None]:
        """Hold the per-connection fetch lock; the entry is dropped by its last user."""
        with self._lock:
            entry = self._inflight.get(connection_id)
            if entry is None:
                entry = self._inflight[connection_id] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._lock:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._inflight[connection_id]

    def fetch_schema(self, connection_id: str) -> DatabaseSchema:
        """Return the schema for a connection, fetching it on a cache miss.

        Raises:
            SchemaFetchError: If the fetcher fails or returns a payload
                without a recognizable table list.
        """
        schema = self._cached(connection_id)
        if schema is not None:
            logger.debug(f"Schema cache hit for {connection_id}")
            return schema

        with self._key_lock(connection_id):
            # Another thread may have filled the entry while we waited
            schema = self._cached(connection_id)
            if schema is not None:
                return schema

            logger.debug(f"Schema cache miss for {connection_id}, fetching")
            try:
                payload = self._fetcher(connection_id)
            except SchemaFetchError:
                raise
            except Exception as e:
                raise SchemaFetchError(f"Schema fetch failed for {connection_id}: {e}", connection_id) from e

            try:
                schema = schema_from_payload(payload)
            except SchemaFetchError as e:
                e.connection_id = connection_id
                raise

            with self._lock:
                self._entries[connection_id] = (schema, self._clock() + self._ttl)
            logger.info(f"Fetched schema for {connection_id}: {schema.total_tables} tables, {schema.total_columns} columns")
            return schema

    def fetch_schema_or_none(self, connection_id: str | None) -> DatabaseSchema | None:
        """Fail-open variant: a fetch failure means "schema unavailable"."""
        if not connection_id:
            return None
        try:
            return self.fetch_schema(connection_id)
        except SchemaFetchError as e:
            logger.warning(f"Schema unavailable for {connection_id}: {e}")
            return None

    def invalidate(self, connection_id: str | None = None) -> None:
        """Drop one cached entry, or every entry when no id is given."""
        with self._lock:
            if connection_id is None:
                self._entries.clear()
            else:
                self._entries.pop(connection_id, None)


# ---------------------------------------------------------------------------
# Job polling
# ---------------------------------------------------------------------------

def poll_job(
    get_job: Callable[[str], dict[str, Any]],
    job_id: str,
    interval: float = 1.0,
    timeout: float = 60.0,
    cancel: threading.Event | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Any:
    """Poll a background job until it completes and return its result.

    ``get_job`` returns a dict with a ``status`` and, once done, a ``result``
    (or ``result_data``). Pending and running states keep the loop going.

    Raises:
        SchemaFetchError: On job failure, timeout or cancellation.
    """
    deadline = clock() + timeout
    while True:
        if cancel is not None and cancel.is_set():
            raise SchemaFetchError(f"Job {job_id} was cancelled")

        job = get_job(job_id) or {}
        status = str(job.get("status") or "").lower()
        if status in _DONE_STATUSES:
            return job.get("result", job.get("result_data"))
        if status in _FAILED_STATUSES:
            raise SchemaFetchError(f"Job {job_id} {status}: {job.get('error') or 'no details'}")

        if clock() >= deadline:
            raise SchemaFetchError(f"Job {job_id} did not finish within {timeout:.0f}s (last status: {status or 'unknown'})")
        sleep(interval)


def job_fetcher(
    submit: Callable[[str], str],
    get_job: Callable[[str], dict[str, Any]],
    interval: float = 1.0,
    timeout: float = 60.0,
    cancel: threading.Event | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable[[str], Any]:
    """Build a catalog fetcher that submits a metadata job and polls it."""

    def fetch(connection_id: str) -> Any:
        job_id = submit(connection_id)
        logger.debug(f"Submitted metadata job {job_id} for {connection_id}")
        return poll_job(get_job, job_id, interval=interval, timeout=timeout, cancel=cancel, sleep=sleep)

    return fetch
