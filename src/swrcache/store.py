"""CacheStore - keyed table of fetch-state records with TTL eviction.

Records are grouped by namespace so a consumer's records can be dropped
together when it is torn down. A background sweep removes records older than
the default TTL; it runs only while the store holds records.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import fields, replace
from typing import Any

from swrcache.duration import parse_duration, to_seconds
from swrcache.types import CacheKey, CacheRecord, Duration

logger = logging.getLogger(__name__)

_RECORD_FIELDS = frozenset(f.name for f in fields(CacheRecord)) - {
    "timestamp",
    "initialized",
}


def _now() -> int:
    return int(time.time() * 1000)


class CacheStore:
    """In-memory store of CacheRecords keyed by (namespace, base_key)."""

    def __init__(
        self,
        *,
        default_ttl: Duration = "5m",
        sweep_interval: Duration = "60s",
    ) -> None:
        self._default_ttl = parse_duration(default_ttl)
        self._sweep_interval = parse_duration(sweep_interval)
        if self._sweep_interval == 0:
            raise ValueError("sweep_interval must be greater than zero")
        self._records: dict[str, dict[str, CacheRecord[Any]]] = {}
        self._sweep_task: asyncio.Task[None] | None = None

    @property
    def default_ttl(self) -> int:
        """Default TTL in milliseconds."""
        return self._default_ttl

    @property
    def sweeping(self) -> bool:
        """Whether the background sweep task is alive."""
        return self._sweep_task is not None and not self._sweep_task.done()

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._records.values())

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        namespace, base_key = key
        return base_key in self._records.get(namespace, {})

    def namespaces(self) -> list[str]:
        """Namespaces that currently hold at least one record."""
        return list(self._records)

    @staticmethod
    def generate_key(namespace: str, base_key: str) -> CacheKey:
        """Build the cache key for a resource in a namespace."""
        return CacheKey(namespace, base_key)

    def get_state(self, key: CacheKey) -> CacheRecord[Any]:
        """Return the record for key, creating an initial one if needed."""
        bucket = self._records.setdefault(key.namespace, {})
        record = bucket.get(key.base_key)
        if record is None:
            record = CacheRecord(timestamp=_now())
            bucket[key.base_key] = record
        return record

    def set_state(self, key: CacheKey, **changes: Any) -> CacheRecord[Any]:
        """Merge changes into the record for key and return the new record.

        Every write refreshes the timestamp and marks the record as written.
        """
        unknown = set(changes) - _RECORD_FIELDS
        if unknown:
            raise TypeError(f"Unknown record fields: {sorted(unknown)}")

        current = self.get_state(key)
        record = replace(current, **changes, timestamp=_now(), initialized=False)
        self._records[key.namespace][key.base_key] = record
        self._start_sweep()
        return record

    def delete_state(self, key: CacheKey) -> None:
        """Remove the record for key, if any."""
        bucket = self._records.get(key.namespace)
        if bucket is not None:
            bucket.pop(key.base_key, None)
            if not bucket:
                del self._records[key.namespace]
        self._stop_sweep()

    def clear_namespace(self, namespace: str) -> int:
        """Remove every record in namespace. Returns how many were removed."""
        bucket = self._records.pop(namespace, {})
        if bucket:
            logger.debug(
                "Cleared %d record(s) in namespace %r", len(bucket), namespace
            )
        self._stop_sweep()
        return len(bucket)

    def is_expired(self, key: CacheKey, ttl: Duration | None = None) -> bool:
        """Check if the record for key is missing, never written, or too old."""
        record = self._records.get(key.namespace, {}).get(key.base_key)
        if record is None or record.initialized:
            return True
        ttl_ms = self._default_ttl if ttl is None else parse_duration(ttl)
        return _now() - record.timestamp > ttl_ms

    def sweep(self) -> int:
        """Delete records older than the default TTL.

        Per-consumer TTLs are not consulted; this is a global backstop.
        """
        now = _now()
        removed = 0
        for namespace in list(self._records):
            bucket = self._records[namespace]
            for base_key in [
                k for k, r in bucket.items() if now - r.timestamp > self._default_ttl
            ]:
                del bucket[base_key]
                removed += 1
            if not bucket:
                del self._records[namespace]
        if removed:
            logger.debug("Sweep removed %d expired record(s)", removed)
        self._stop_sweep()
        return removed

    def clear(self) -> None:
        """Remove all records."""
        self._records.clear()
        self._stop_sweep()

    def shutdown(self) -> None:
        """Stop the background sweep. Records are kept."""
        self._cancel_sweep()

    # -------------------------------------------------------------------------
    # Background sweep
    # -------------------------------------------------------------------------

    def _start_sweep(self) -> None:
        if self.sweeping or not self._records:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; the next write made from inside one starts it.
            return
        self._sweep_task = loop.create_task(self._sweep_loop())
        logger.debug("Started cache sweep every %dms", self._sweep_interval)

    def _stop_sweep(self) -> None:
        if self._records or self._sweep_task is None:
            return
        self._cancel_sweep()
        logger.debug("Stopped cache sweep, store is empty")

    def _cancel_sweep(self) -> None:
        task, self._sweep_task = self._sweep_task, None
        if task is not None and not task.done() and not task.get_loop().is_closed():
            task.cancel()

    async def _sweep_loop(self) -> None:
        while self._records:
            await asyncio.sleep(to_seconds(self._sweep_interval))
            self.sweep()


__all__ = ["CacheStore"]
