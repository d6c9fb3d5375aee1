"""ConsumerBinding - one consumer's view onto a cached resource.

Provides:
- SWROptions: per-consumer configuration
- Mutation: one entry of a batch_mutate() call
- ConsumerBinding: projection, dependency watching, teardown invalidation,
  and the mutate()/batch_mutate()/revalidate() operations
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from swrcache.duration import parse_duration, to_seconds
from swrcache.engine import RevalidateOptions, RevalidationEngine
from swrcache.host import ViewHost
from swrcache.store import CacheStore
from swrcache.types import MISSING, CacheKey, CacheRecord, Duration, FetchFn
from swrcache.watcher import DependencyWatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SWROptions:
    """Configuration for a consumer binding."""

    deps: tuple[str, ...] = ()
    ttl: Duration | None = None  # store default when None
    retry_limit: int = 3
    retry_interval: Duration = "1s"
    fire_immediately: bool = True
    debounce: Duration = "300ms"
    keep_previous_data: bool = True
    refresh_interval: Duration | None = None
    on_success: Callable[[Any], Any] | None = None
    on_error: Callable[[BaseException], Any] | None = None

    def __post_init__(self) -> None:
        if isinstance(self.deps, str):
            raise TypeError("deps must be a sequence of names, not a string")
        object.__setattr__(self, "deps", tuple(self.deps))
        if self.retry_limit < 0:
            raise ValueError("retry_limit must not be negative")
        for value in (self.ttl, self.refresh_interval):
            if value is not None:
                parse_duration(value)
        if self.refresh_interval is not None and not parse_duration(
            self.refresh_interval
        ):
            raise ValueError("refresh_interval must be greater than zero")


@dataclass(frozen=True, slots=True)
class Mutation:
    """A sibling resource to refresh in batch_mutate()."""

    key: str
    fetch_fn: FetchFn
    optimistic_data: Any = MISSING


class ConsumerBinding:
    """Binds one cache key to one consumer's view."""

    def __init__(
        self,
        host: ViewHost,
        base_key: str,
        fetch_fn: FetchFn,
        options: SWROptions | None = None,
        *,
        store: CacheStore,
        engine: RevalidationEngine,
    ) -> None:
        self._host = host
        self._base_key = base_key
        self._fetch_fn = fetch_fn
        self._options = options or SWROptions()
        self._store = store
        self._engine = engine
        self._key = store.generate_key(host.namespace, base_key)
        self._tasks: set[asyncio.Task[Any]] = set()
        self._refresh_task: asyncio.Task[None] | None = None

        store.get_state(self._key)
        if host.read(base_key) is None:
            self._project()

        self._watcher = DependencyWatcher(
            host, self.revalidate, debounce=self._options.debounce
        )
        self._watcher.watch(self._options.deps)

        host.on_teardown(self.teardown)

        if self._options.fire_immediately and store.is_expired(
            self._key, self._options.ttl
        ):
            self._spawn(self.mutate())
        if self._options.refresh_interval is not None:
            interval = to_seconds(parse_duration(self._options.refresh_interval))
            self._refresh_task = asyncio.get_running_loop().create_task(
                self._refresh_loop(interval)
            )

    @property
    def key(self) -> CacheKey:
        return self._key

    @property
    def namespace(self) -> str:
        return self._key.namespace

    @property
    def base_key(self) -> str:
        return self._base_key

    @property
    def options(self) -> SWROptions:
        return self._options

    @property
    def watcher(self) -> DependencyWatcher:
        return self._watcher

    def get_current_state(self) -> CacheRecord[Any]:
        """Snapshot of the record behind this binding."""
        return self._store.get_state(self._key)

    async def mutate(self, optimistic_data: Any = MISSING) -> Any:
        """Refetch this binding's resource, optionally showing optimistic_data first.

        The view is re-projected when the attempt settles, even on failure.
        """
        task = self._engine.submit(
            self._key, self._fetch_fn, self._revalidate_options(optimistic_data)
        )
        self._project()
        try:
            return await asyncio.shield(task)
        finally:
            self._project()

    async def revalidate(self) -> Any:
        """Refetch without optimistic data."""
        return await self.mutate()

    async def batch_mutate(self, mutations: Iterable[Mutation]) -> list[Any]:
        """Refresh sibling resources in this namespace concurrently.

        Waits for all of them, then re-projects this binding's own view once.
        If any attempt failed, the first failure is raised.
        """
        attempts = [
            self._engine.attempt(
                self._store.generate_key(self.namespace, m.key),
                m.fetch_fn,
                RevalidateOptions(
                    retry_limit=self._options.retry_limit,
                    retry_interval=self._options.retry_interval,
                    optimistic_data=m.optimistic_data,
                    keep_previous_data=self._options.keep_previous_data,
                ),
            )
            for m in mutations
        ]
        try:
            results: Sequence[Any] = await asyncio.gather(
                *attempts, return_exceptions=True
            )
        finally:
            self._project()

        for result in results:
            if isinstance(result, BaseException):
                raise result
        return list(results)

    def teardown(self) -> None:
        """Invalidate the namespace and stop this binding's timers."""
        logger.debug("Tearing down binding for %s", self._key)
        self._store.clear_namespace(self.namespace)
        self._watcher.cancel()
        for task in list(self._tasks):
            task.cancel()
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _revalidate_options(self, optimistic_data: Any) -> RevalidateOptions:
        return RevalidateOptions(
            retry_limit=self._options.retry_limit,
            retry_interval=self._options.retry_interval,
            optimistic_data=optimistic_data,
            on_success=self._options.on_success,
            on_error=self._options.on_error,
            keep_previous_data=self._options.keep_previous_data,
        )

    def _project(self) -> None:
        self._host.write({self._base_key: self.get_current_state().view()})

    def _spawn(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Initial fetch for %s failed: %r", self._key, exc)

    async def _refresh_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.revalidate()
            except Exception as exc:
                logger.warning("Periodic refresh of %s failed: %r", self._key, exc)


__all__ = ["ConsumerBinding", "Mutation", "SWROptions"]
