"""Duplicate-call suppression for cache loads.

Concurrent callers asking for the same key share one execution of the load
function. The load runs in its own task, so a caller that times out or is
cancelled stops waiting without disturbing the load or the other callers.

Usage:
    flight = SingleFlight()
    value = await flight.do(key, lambda: fetch(key), timeout=5.0)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial
from typing import Any, Generic, TypeVar

from observer.cache.errors import LoadCancelled, LoadTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class InFlightLoad(Generic[T]):
    """A load in progress, shared by every caller of the same key."""

    task: asyncio.Future[T]
    waiters: int = 1


class SingleFlight(Generic[T]):
    """Runs at most one load per key at a time."""

    def __init__(self) -> None:
        self._calls: dict[str, InFlightLoad[T]] = {}

    def in_flight(self) -> int:
        """Number of keys with a load in progress."""
        return len(self._calls)

    async def do(
        self,
        key: str,
        fn: Callable[[], Awaitable[T]],
        timeout: float | None = None,
    ) -> T:
        """Run fn for key, or join the load already running for it."""
        value, _ = await self.do_ex(key, fn, timeout)
        return value

    async def do_ex(
        self,
        key: str,
        fn: Callable[[], Awaitable[T]],
        timeout: float | None = None,
    ) -> tuple[T, bool]:
        """Like do, also reporting whether the result came from another caller's load.

        Raises:
            LoadTimeout: timeout expired before the load finished
            LoadCancelled: the load task itself was cancelled
        """
        # No await between the lookup and the insert: the check-and-register
        # is atomic on the event loop.
        call = self._calls.get(key)
        shared = call is not None
        if call is None:
            call = InFlightLoad(task=asyncio.ensure_future(fn()))
            self._calls[key] = call
            call.task.add_done_callback(partial(self._finish, key, call))
        else:
            call.waiters += 1
            logger.debug("Joined in-flight load for %s (%d waiters)", key, call.waiters)

        try:
            if timeout is None:
                value = await asyncio.shield(call.task)
            else:
                value = await asyncio.wait_for(asyncio.shield(call.task), timeout)
        except TimeoutError:
            if call.task.done():
                raise
            raise LoadTimeout(key) from None
        except asyncio.CancelledError:
            current = asyncio.current_task()
            caller_cancelled = current is not None and current.cancelling() > 0
            if call.task.cancelled() and not caller_cancelled:
                raise LoadCancelled(key) from None
            raise
        return value, shared

    def _finish(self, key: str, call: InFlightLoad[Any], task: asyncio.Future[Any]) -> None:
        if self._calls.get(key) is call:
            del self._calls[key]
        # Mark the exception retrieved; waiters that left early never read it.
        if not task.cancelled():
            task.exception()
