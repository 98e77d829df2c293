"""Bounded-concurrency task queue with an explicit drain signal."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Iterable, Optional, Set

logger = logging.getLogger(__name__)

WorkerFunc = Callable[[str], Awaitable[Any]]
ProgressHook = Callable[[int, int], None]


@dataclass
class SchedulerState:
    """Queue bookkeeping; mutated only by ``TaskQueue._admit`` / ``TaskQueue._complete``."""

    total: int = 0
    pending: Deque[str] = field(default_factory=deque)
    active: int = 0
    completed: int = 0
    failed: int = 0
    max_active: int = 0

    @property
    def idle(self) -> bool:
        return not self.pending and self.active == 0


class TaskQueue:
    """Run ``worker_fn`` for every identifier with at most ``concurrency`` in flight.

    A freed slot immediately admits the next pending identifier. ``run``
    returns once every admitted identifier has finished. An exception raised
    by ``worker_fn`` is logged and counted in ``state.failed``; it never stops
    the remaining work.
    """

    def __init__(self, concurrency: int, on_progress: Optional[ProgressHook] = None) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.concurrency = concurrency
        self.on_progress = on_progress
        self.state = SchedulerState()
        self._drained: Optional[asyncio.Event] = None
        self._worker_fn: Optional[WorkerFunc] = None
        self._tasks: Set[asyncio.Task] = set()

    async def run(self, identifiers: Iterable[str], worker_fn: WorkerFunc) -> SchedulerState:
        if self._drained is not None and not self._drained.is_set():
            raise RuntimeError("TaskQueue.run is already in progress")
        self.state = SchedulerState(pending=deque(identifiers))
        self.state.total = len(self.state.pending)
        self._worker_fn = worker_fn
        self._drained = asyncio.Event()
        self._admit()
        await self._drained.wait()
        return self.state

    def _admit(self) -> None:
        state = self.state
        while state.pending and state.active < self.concurrency:
            identifier = state.pending.popleft()
            state.active += 1
            state.max_active = max(state.max_active, state.active)
            task = asyncio.create_task(self._run_one(identifier))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        if state.idle and self._drained is not None:
            self._drained.set()

    def _complete(self, failed: bool) -> None:
        state = self.state
        state.active -= 1
        state.completed += 1
        if failed:
            state.failed += 1
        if self.on_progress is not None:
            try:
                self.on_progress(state.completed, state.total)
            except Exception:
                logger.exception("progress hook raised; ignoring")

    async def _run_one(self, identifier: str) -> None:
        worker_fn = self._worker_fn
        failed = False
        try:
            if worker_fn is None:
                raise RuntimeError("TaskQueue._run_one called outside of run()")
            await worker_fn(identifier)
        except Exception:
            failed = True
            logger.exception("task for %s failed unexpectedly; continuing", identifier)
        finally:
            self._complete(failed)
            self._admit()
