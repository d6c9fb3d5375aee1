"""SWR client - owns the cache store and revalidation engine."""

from __future__ import annotations

from typing import Any

from swrcache.binding import ConsumerBinding, SWROptions
from swrcache.engine import RevalidateOptions, RevalidationEngine
from swrcache.host import ViewHost
from swrcache.store import CacheStore
from swrcache.types import CacheRecord, Duration, FetchFn


class SWRClient:
    """Stale-while-revalidate client.

    Usage:
        client = SWRClient(default_ttl="5m")
        binding = client.swr(host, "user", fetch_user, deps=["user_id"])
        await binding.mutate()
        client.shutdown()
    """

    def __init__(
        self,
        *,
        default_ttl: Duration = "5m",
        sweep_interval: Duration = "60s",
    ) -> None:
        self._store = CacheStore(default_ttl=default_ttl, sweep_interval=sweep_interval)
        self._engine = RevalidationEngine(self._store)

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def engine(self) -> RevalidationEngine:
        return self._engine

    def swr(
        self,
        host: ViewHost,
        base_key: str,
        fetch_fn: FetchFn,
        **options: Any,
    ) -> ConsumerBinding:
        """Bind base_key in host's namespace to fetch_fn.

        Keyword options are those of SWROptions.
        """
        return ConsumerBinding(
            host,
            base_key,
            fetch_fn,
            SWROptions(**options),
            store=self._store,
            engine=self._engine,
        )

    async def preload(
        self,
        namespace: str,
        base_key: str,
        fetch_fn: FetchFn,
        **options: Any,
    ) -> Any:
        """Fetch a resource into the cache before any consumer binds to it.

        Keyword options are those of RevalidateOptions.
        """
        key = self._store.generate_key(namespace, base_key)
        return await self._engine.attempt(key, fetch_fn, RevalidateOptions(**options))

    def get_state(self, namespace: str, base_key: str) -> CacheRecord[Any]:
        """Current record for a resource."""
        return self._store.get_state(self._store.generate_key(namespace, base_key))

    def invalidate(self, namespace: str) -> int:
        """Drop every record in namespace."""
        return self._store.clear_namespace(namespace)

    def shutdown(self) -> None:
        """Stop background work owned by the client."""
        self._store.shutdown()


def create_client(
    *,
    default_ttl: Duration = "5m",
    sweep_interval: Duration = "60s",
) -> SWRClient:
    """Create an SWR client.

    Args:
        default_ttl: Record age after which it counts as expired and is swept
        sweep_interval: How often the background sweep runs

    Returns:
        SWRClient with swr, preload, get_state, invalidate, shutdown
    """
    return SWRClient(default_ttl=default_ttl, sweep_interval=sweep_interval)


__all__ = ["SWRClient", "create_client"]
