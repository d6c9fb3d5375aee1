"""Core types for the swrcache library."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Generic, NamedTuple, TypeVar

T = TypeVar("T")

# "300ms", "30s", "5m", "1h", milliseconds, or a timedelta
Duration = str | int | timedelta

FetchFn = Callable[[], Any]  # sync or async, awaited when it returns an awaitable


class _Missing:
    """Sentinel for "no value supplied" where None is a legal value."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


class CacheKey(NamedTuple):
    """Two-level cache key: the consumer namespace and the resource name."""

    namespace: str
    base_key: str

    def __str__(self) -> str:
        return f"{self.namespace}_{self.base_key}"


@dataclass(frozen=True, slots=True)
class CacheRecord(Generic[T]):
    """Fetch state for one cache key.

    Records are immutable; every write to the store replaces the record.
    """

    data: T | None = None
    is_loading: bool = False
    is_validating: bool = False
    error: BaseException | None = None
    timestamp: int = 0  # Unix timestamp ms of the last write
    retry_count: int = 0
    initialized: bool = True  # auto-created, never written

    def view(self) -> dict[str, Any]:
        """The slice of the record projected into a consumer's view."""
        return {
            "data": self.data,
            "is_loading": self.is_loading,
            "is_validating": self.is_validating,
            "error": self.error,
        }
