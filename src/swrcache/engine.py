"""RevalidationEngine - fetch attempts with retry, backoff and optimistic writes.

Attempts for the same key are coalesced: while one is in flight, later
callers share its task instead of issuing a second fetch.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from swrcache.duration import parse_duration, to_seconds
from swrcache.store import CacheStore
from swrcache.types import MISSING, CacheKey, Duration, FetchFn

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RevalidateOptions:
    """Options for a single revalidation attempt."""

    retry_limit: int = 3
    retry_interval: Duration = "1s"
    optimistic_data: Any = MISSING
    on_success: Callable[[Any], Any] | None = None
    on_error: Callable[[BaseException], Any] | None = None
    keep_previous_data: bool = True

    def __post_init__(self) -> None:
        if self.retry_limit < 0:
            raise ValueError("retry_limit must not be negative")
        parse_duration(self.retry_interval)


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class RevalidationEngine:
    """Runs fetch attempts and records their outcome in a CacheStore."""

    def __init__(self, store: CacheStore) -> None:
        self._store = store
        self._in_flight: dict[CacheKey, asyncio.Task[Any]] = {}

    @property
    def store(self) -> CacheStore:
        return self._store

    def in_flight(self, key: CacheKey) -> bool:
        """Whether an attempt for key is currently running."""
        return key in self._in_flight

    def submit(
        self,
        key: CacheKey,
        fetch_fn: FetchFn,
        options: RevalidateOptions | None = None,
    ) -> asyncio.Task[Any]:
        """Start an attempt for key, or join the one already running.

        The loading state is written before this returns, so callers can
        project it straight away. Must be called with a running event loop.
        """
        options = options or RevalidateOptions()
        existing = self._in_flight.get(key)
        if existing is not None:
            if options.optimistic_data is not MISSING:
                self._store.set_state(key, data=options.optimistic_data)
            logger.debug("Joining in-flight attempt for %s", key)
            if options.on_success is None and options.on_error is None:
                return existing
            loop = asyncio.get_running_loop()
            return loop.create_task(self._join(existing, options))

        record = self._store.get_state(key)
        start = record.retry_count
        loading: dict[str, Any] = {
            "is_loading": True,
            "is_validating": record.data is not None,
        }
        if options.optimistic_data is not MISSING:
            loading["data"] = options.optimistic_data
        elif not options.keep_previous_data:
            loading["data"] = None
        self._store.set_state(key, **loading)

        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run(key, fetch_fn, options, start))
        self._in_flight[key] = task
        task.add_done_callback(lambda t: self._forget(key, t))
        return task

    async def attempt(
        self,
        key: CacheKey,
        fetch_fn: FetchFn,
        options: RevalidateOptions | None = None,
    ) -> Any:
        """Fetch a fresh value for key, retrying on failure.

        Returns the fetched value, or raises the last fetch error once the
        retry limit is reached. The record is updated either way.
        """
        return await asyncio.shield(self.submit(key, fetch_fn, options))

    async def _join(
        self, task: asyncio.Task[Any], options: RevalidateOptions
    ) -> Any:
        """Wait on an in-flight attempt, then run the joining caller's callbacks."""
        try:
            data = await asyncio.shield(task)
        except Exception as exc:
            if options.on_error is not None:
                await _resolve(options.on_error(exc))
            raise
        if options.on_success is not None:
            await _resolve(options.on_success(data))
        return data

    def _forget(self, key: CacheKey, task: asyncio.Task[Any]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _run(
        self,
        key: CacheKey,
        fetch_fn: FetchFn,
        options: RevalidateOptions,
        attempt: int,
    ) -> Any:
        interval = to_seconds(parse_duration(options.retry_interval))
        while True:
            logger.debug("Fetching %s (attempt %d)", key, attempt)
            try:
                data = await _resolve(fetch_fn())
            except Exception as exc:
                if attempt < options.retry_limit:
                    logger.debug(
                        "Fetch for %s failed (%r), retrying in %.3fs",
                        key,
                        exc,
                        interval,
                    )
                    await asyncio.sleep(interval)
                    attempt += 1
                    continue

                logger.warning(
                    "Fetch for %s failed after %d attempt(s): %r", key, attempt + 1, exc
                )
                if options.on_error is not None:
                    await self._guarded_await(key, options.on_error, exc)
                self._store.set_state(
                    key,
                    error=exc,
                    is_loading=False,
                    is_validating=False,
                    retry_count=attempt,
                )
                raise

            if options.on_success is not None:
                await self._guarded_await(key, options.on_success, data)
            self._store.set_state(
                key,
                data=data,
                error=None,
                is_loading=False,
                is_validating=False,
                retry_count=0,
            )
            return data

    async def _guarded_await(
        self, key: CacheKey, callback: Callable[[Any], Any], arg: Any
    ) -> None:
        """Run a caller callback; if it raises, settle the record and re-raise."""
        try:
            await _resolve(callback(arg))
        except BaseException:
            self._store.set_state(key, is_loading=False, is_validating=False)
            raise


__all__ = ["RevalidateOptions", "RevalidationEngine"]
