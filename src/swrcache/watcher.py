"""DependencyWatcher - debounced revalidation when observed values change."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Iterable
from functools import partial
from typing import Any

from swrcache.duration import parse_duration, to_seconds
from swrcache.host import ViewHost
from swrcache.types import MISSING, Duration

logger = logging.getLogger(__name__)


class DependencyWatcher:
    """Watches named host values and calls back once a burst of changes settles.

    One debounce timer is shared by every watched name: a change to any of
    them restarts it, and only the last change in the window triggers.
    """

    def __init__(
        self,
        host: ViewHost,
        callback: Callable[[], Any],
        *,
        debounce: Duration = "300ms",
    ) -> None:
        self._host = host
        self._callback = callback
        self._delay = to_seconds(parse_duration(debounce))
        self._shadows: dict[str, Any] = {}
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def watching(self) -> frozenset[str]:
        return frozenset(self._shadows)

    @property
    def pending(self) -> bool:
        """Whether a debounced trigger is waiting to fire."""
        return self._timer is not None

    def shadow(self, name: str) -> Any:
        """Last value observed for name, or MISSING if it is not watched."""
        return self._shadows.get(name, MISSING)

    def watch(self, names: Iterable[str]) -> None:
        """Start observing names. Already-watched names are skipped."""
        for name in names:
            if name in self._shadows:
                continue
            self._shadows[name] = self._host.read(name)
            self._host.observe(name, partial(self._on_change, name))
            logger.debug("Watching %r on %r", name, self._host.namespace)

    def cancel(self) -> None:
        """Drop a pending trigger. A revalidation already running is untouched."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_change(self, name: str, value: Any) -> None:
        self._shadows[name] = value
        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Written outside the event loop; nothing can be scheduled.
            logger.debug("Change to %r outside an event loop, not scheduled", name)
            return
        self._timer = loop.call_later(self._delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        logger.debug("Dependencies settled on %r, revalidating", self._host.namespace)
        result = self._callback()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(
                "Revalidation after dependency change on %r failed: %r",
                self._host.namespace,
                exc,
            )


__all__ = ["DependencyWatcher"]
