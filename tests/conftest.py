"""Shared pytest fixtures."""

import asyncio
from collections.abc import Awaitable, Callable, Iterator

import pytest

from swrcache import CacheStore, DictHost, RevalidationEngine, SWRClient
from swrcache import store as store_module


class FakeClock:
    """Controls the millisecond clock the store reads."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Freeze the store clock; advance it explicitly."""
    fake = FakeClock()
    monkeypatch.setattr(store_module, "_now", fake)
    return fake


@pytest.fixture
def store() -> Iterator[CacheStore]:
    """Create a fresh CacheStore for each test."""
    cache_store = CacheStore()
    yield cache_store
    cache_store.shutdown()


@pytest.fixture
def engine(store: CacheStore) -> RevalidationEngine:
    """Create an engine over the test store."""
    return RevalidationEngine(store)


@pytest.fixture
def client() -> Iterator[SWRClient]:
    """Create a fresh SWRClient for each test."""
    swr_client = SWRClient()
    yield swr_client
    swr_client.shutdown()


@pytest.fixture
def host() -> DictHost:
    """Create a host for the "test-page" namespace."""
    return DictHost("test-page")


FetchFactory = Callable[..., tuple[Callable[[], Awaitable[object]], list[float]]]


@pytest.fixture
def make_fetch() -> FetchFactory:
    """Build fetch functions that play back outcomes in order.

    Exceptions among the outcomes are raised, anything else is returned. The
    last outcome repeats once the list is exhausted. The returned list records
    the event-loop time of every call.
    """

    def factory(
        *outcomes: object,
    ) -> tuple[Callable[[], Awaitable[object]], list[float]]:
        calls: list[float] = []

        async def fetch() -> object:
            outcome = outcomes[min(len(calls), len(outcomes) - 1)]
            calls.append(asyncio.get_running_loop().time())
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome

        return fetch, calls

    return factory
