"""Host protocol for the view layer that consumes cache state."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[Any], None]
TeardownHook = Callable[[], None]


@runtime_checkable
class ViewHost(Protocol):
    """The view a ConsumerBinding projects cache state into."""

    namespace: str

    def read(self, name: str) -> Any:
        """Read a bound value. Dotted paths address nested values."""
        ...

    def write(
        self, updates: Mapping[str, Any], callback: Callable[[], None] | None = None
    ) -> None:
        """Apply path-addressed partial updates, then call callback."""
        ...

    def observe(self, name: str, on_change: ChangeCallback) -> None:
        """Call on_change with the new value whenever name is written."""
        ...

    def on_teardown(self, hook: TeardownHook) -> None:
        """Register hook to run when the view is discarded."""
        ...


def _split(path: str) -> list[str]:
    parts = path.split(".")
    if not all(parts):
        raise ValueError(f"Invalid path: {path!r}")
    return parts


class DictHost:
    """Dict-backed ViewHost.

    Usage:
        host = DictHost("home")
        binding = client.swr(host, "user", fetch_user)
        host.data["user"]["data"]
        host.teardown()
    """

    def __init__(self, namespace: str, data: dict[str, Any] | None = None) -> None:
        self.namespace = namespace
        self.data: dict[str, Any] = data if data is not None else {}
        self._observers: dict[str, list[ChangeCallback]] = {}
        self._teardown_hook: TeardownHook | None = None
        self._torn_down = False

    def read(self, name: str) -> Any:
        node: Any = self.data
        for part in _split(name):
            if not isinstance(node, Mapping) or part not in node:
                return None
            node = node[part]
        return node

    def write(
        self, updates: Mapping[str, Any], callback: Callable[[], None] | None = None
    ) -> None:
        changed: list[str] = []
        for path, value in updates.items():
            *parents, leaf = _split(path)
            node = self.data
            for part in parents:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = node[part] = {}
                node = child
            node[leaf] = value
            top = path.split(".", 1)[0]
            if top not in changed:
                changed.append(top)

        for name in changed:
            for on_change in list(self._observers.get(name, ())):
                on_change(self.data.get(name))
        if callback is not None:
            callback()

    def observe(self, name: str, on_change: ChangeCallback) -> None:
        observers = self._observers.setdefault(name, [])
        if on_change not in observers:
            observers.append(on_change)

    def observers(self, name: str) -> int:
        """Number of observers installed on name."""
        return len(self._observers.get(name, ()))

    def on_teardown(self, hook: TeardownHook) -> None:
        previous = self._teardown_hook

        def chained() -> None:
            hook()
            if previous is not None:
                previous()

        self._teardown_hook = chained

    def teardown(self) -> None:
        """Discard the view, running the registered hooks once."""
        if self._torn_down:
            return
        self._torn_down = True
        logger.debug("Tearing down host %r", self.namespace)
        if self._teardown_hook is not None:
            self._teardown_hook()


__all__ = ["DictHost", "ViewHost"]
