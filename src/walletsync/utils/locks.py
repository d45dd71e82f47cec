"""Concurrency control utilities for session refreshes.

Provides a single-flight guard so that overlapping refresh requests for the
same session (periodic tick and manual pull) share one fetch instead of
issuing duplicate fetch sets.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight:
    """Deduplicates concurrent calls that share a key.

    The first caller for a key starts the work; callers arriving while it is
    in flight await the same result. Once it finishes the key is free again.

    Example:
        flight = SingleFlight()
        state = await flight.run(session_id, store.do_refresh)
    """

    def __init__(self):
        self._inflight: dict[str, asyncio.Task] = {}

    async def run(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` for ``key`` unless a call for ``key`` is already running.

        Args:
            key: Deduplication key (session id)
            fn: Zero-argument coroutine function doing the work

        Returns:
            Result of the shared call
        """
        task = self._inflight.get(key)
        if task is not None:
            logger.debug(f"Joining in-flight call for {key}")
        else:
            task = asyncio.ensure_future(fn())
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
            logger.debug(f"Started call for {key}")

        # A cancelled waiter must not cancel the shared work
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    def in_flight(self, key: str) -> bool:
        """Check whether a call for ``key`` is running."""
        return key in self._inflight
