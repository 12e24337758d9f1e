"""FIFO async mutual exclusion for tool execution.

Every tool call runs against the same browser, so calls take turns: one
holder at a time, waiters granted strictly in arrival order.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress


class Guard:
    """One-shot release token returned by `ExclusiveGate.acquire()`."""

    __slots__ = ("_gate", "_released")

    def __init__(self, gate: ExclusiveGate) -> None:
        self._gate = gate
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def dispose(self) -> None:
        if self._released:
            raise RuntimeError("Guard already released")
        self._released = True
        self._gate._release()  # noqa: SLF001


class ExclusiveGate:
    """Async mutex with FIFO hand-off.

    On release the gate is handed directly to the oldest waiter (it never
    becomes free in between), so a late `acquire()` can't overtake the queue.
    """

    def __init__(self) -> None:
        self._locked = False
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def waiters(self) -> int:
        return sum(1 for fut in self._waiters if not fut.done())

    async def acquire(self) -> Guard:
        if not self._locked and not self._waiters:
            self._locked = True
            return Guard(self)

        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        try:
            await fut
        except asyncio.CancelledError:
            if fut.done() and not fut.cancelled():
                # Granted, but cancelled before resuming: pass the turn on.
                self._release()
            else:
                with suppress(ValueError):
                    self._waiters.remove(fut)
            raise
        return Guard(self)

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[Guard]:
        guard = await self.acquire()
        try:
            yield guard
        finally:
            if not guard.released:
                guard.dispose()

    def _release(self) -> None:
        while self._waiters:
            fut = self._waiters.popleft()
            if not fut.done():
                fut.set_result(None)
                return
        self._locked = False
