"""
Schedulers for delayed continuations.

Dispatch never blocks: settle delays and retry backoff are scheduled as
callbacks through a scheduler with a single method,

    call_later(delay_ms, callback) -> handle   (handle.cancel())

ManualScheduler runs on a virtual clock advanced by the embedder (a host
frame loop, or a test). AsyncioScheduler hands callbacks to an event loop.
"""

import asyncio
import heapq
import itertools
from typing import Callable, Optional

from loguru import logger


class ScheduledCall:
    """Handle for a pending callback."""

    def __init__(self, due_ms: float, callback: Callable[[], object]):
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler driven by advance()."""

    def __init__(self):
        self.now_ms = 0.0
        self._queue: list = []
        self._counter = itertools.count()

    def call_later(self, delay_ms: float, callback: Callable[[], object]) -> ScheduledCall:
        call = ScheduledCall(self.now_ms + max(0.0, delay_ms), callback)
        heapq.heappush(self._queue, (call.due_ms, next(self._counter), call))
        return call

    @property
    def pending(self) -> int:
        return sum(1 for _, _, call in self._queue if not call.cancelled)

    def advance(self, delay_ms: float) -> int:
        """Move the clock forward, running every callback that falls due. Returns the count run."""
        target = self.now_ms + delay_ms
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, call = heapq.heappop(self._queue)
            self.now_ms = max(self.now_ms, due)
            if call.cancelled:
                continue
            self._run(call)
            ran += 1
        self.now_ms = target
        return ran

    def run_all(self, limit: int = 10_000) -> int:
        """Run callbacks until none are pending (bounded by limit)."""
        ran = 0
        while self._queue and ran < limit:
            due, _, call = heapq.heappop(self._queue)
            self.now_ms = max(self.now_ms, due)
            if call.cancelled:
                continue
            self._run(call)
            ran += 1
        return ran

    @staticmethod
    def _run(call: ScheduledCall) -> None:
        try:
            call.callback()
        except Exception:
            logger.exception("Scheduled callback failed")


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay_ms: float, callback: Callable[[], object]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(0.0, delay_ms) / 1000.0, callback)
