"""swrcache - stale-while-revalidate caching for asyncio."""

from contextlib import suppress

# Consumer bindings
from swrcache.binding import ConsumerBinding, Mutation, SWROptions

# Client API
from swrcache.client import SWRClient, create_client

# Duration parsing
from swrcache.duration import parse_duration

# Engine
from swrcache.engine import RevalidateOptions, RevalidationEngine
from swrcache.errors import FetchError, SWRError

# Hosts
from swrcache.host import DictHost, ViewHost
from swrcache.store import CacheStore

# Core types
from swrcache.types import (
    MISSING,
    CacheKey,
    CacheRecord,
    Duration,
)
from swrcache.watcher import DependencyWatcher

# Optional fetchers - only available when httpx is installed
with suppress(ImportError):
    from swrcache.fetchers import json_fetcher

__version__ = "0.1.0"

__all__ = [
    "MISSING",
    "CacheKey",
    "CacheRecord",
    "CacheStore",
    "ConsumerBinding",
    "DependencyWatcher",
    "DictHost",
    "Duration",
    "FetchError",
    "Mutation",
    "RevalidateOptions",
    "RevalidationEngine",
    "SWRClient",
    "SWRError",
    "SWROptions",
    "ViewHost",
    "create_client",
    "json_fetcher",
    "parse_duration",
]
