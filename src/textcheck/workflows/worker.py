from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from ..core.errors import ExhaustedRetriesError
from ..core.keys import K_LABEL_ERROR, K_LABEL_MATCH, K_LABEL_NO_MATCH
from .check_config import DEFAULT_FRAGMENT_RULE, FragmentRule
from .extract import extract_fragment
from .http_fetch import FetchFailure, Fetcher, FetchSuccess
from .rate_limit import RateLimiter
from .result_sink import ResultRecord

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]
RecordFunc = Callable[[ResultRecord], Awaitable[None]]


class WorkerState(str, enum.Enum):
    PENDING = "pending"
    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"

    @property
    def terminal(self) -> bool:
        return self in {WorkerState.SUCCEEDED, WorkerState.EXHAUSTED}


@dataclass
class Task:
    """One identifier moving through the retry state machine."""

    identifier: str
    url: str
    attempts: int = 0
    state: WorkerState = WorkerState.PENDING
    started_at: float = 0.0
    last_error: str = ""
    history: List[WorkerState] = field(default_factory=list)

    def transition(self, state: WorkerState) -> None:
        if self.state.terminal:
            raise RuntimeError(f"task {self.identifier} already {self.state.value}")
        self.state = state
        self.history.append(state)


class RetryingWorker:
    """Fetch, extract and classify one identifier with bounded retries.

    Fetch failures (timeout, transport) are retried up to ``max_retries``
    times with exponential backoff: ``base_backoff_ms * 2 ** (attempts - 1)``.
    A response with any status code is a final answer. Either terminal state
    appends exactly one record through ``emit``.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        rate_limiter: RateLimiter,
        emit: RecordFunc,
        *,
        expected_marker: str,
        max_retries: int,
        timeout_ms: int,
        base_backoff_ms: int = 400,
        fragment_rule: FragmentRule = DEFAULT_FRAGMENT_RULE,
        match_label: str = K_LABEL_MATCH,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.fetcher = fetcher
        self.rate_limiter = rate_limiter
        self.emit = emit
        self.expected_marker = expected_marker
        self.max_retries = max_retries
        self.timeout_ms = timeout_ms
        self.base_backoff_ms = base_backoff_ms
        self.fragment_rule = fragment_rule
        self.match_label = match_label
        self._sleep = sleep
        self._clock = clock

    def backoff_ms(self, attempts: int) -> int:
        return self.base_backoff_ms * (2 ** max(0, attempts - 1))

    def _elapsed_ms(self, task: Task) -> int:
        return int((self._clock() - task.started_at) * 1000)

    async def process(self, identifier: str, url: str) -> ResultRecord:
        return await self.run(Task(identifier=identifier, url=url))

    async def run(self, task: Task) -> ResultRecord:
        identifier, url = task.identifier, task.url
        task.started_at = self._clock()
        record: Optional[ResultRecord] = None
        while True:
            task.transition(WorkerState.ATTEMPTING)
            await self._sleep(self.rate_limiter.delay_before_next())
            outcome = await self.fetcher.fetch(url, self.timeout_ms)

            if isinstance(outcome, FetchSuccess):
                extraction = extract_fragment(outcome.body, self.expected_marker, self.fragment_rule)
                task.transition(WorkerState.SUCCEEDED)
                record = ResultRecord(
                    identifier=identifier,
                    url=url,
                    status=outcome.status,
                    elapsed_ms=self._elapsed_ms(task),
                    label=self.match_label if extraction.matched else K_LABEL_NO_MATCH,
                    detail=extraction.fragment_text,
                )
                logger.debug("%s: \"%s\" -> %s", identifier, extraction.fragment_text, record.label)
                break

            if not isinstance(outcome, FetchFailure):
                raise TypeError(f"fetcher returned {type(outcome).__name__} for {url}")
            task.attempts += 1
            task.last_error = outcome.message
            if task.attempts > self.max_retries:
                task.transition(WorkerState.EXHAUSTED)
                exhausted = ExhaustedRetriesError(identifier, task.attempts, task.last_error)
                logger.error("%s: giving up after %d attempt(s): %s", identifier, exhausted.attempts, exhausted)
                record = ResultRecord(
                    identifier=identifier,
                    url=url,
                    status=None,
                    elapsed_ms=None,
                    label=K_LABEL_ERROR,
                    detail=str(exhausted),
                )
                break

            task.transition(WorkerState.RETRYING)
            delay_ms = self.backoff_ms(task.attempts)
            logger.warning("Error %s: %s, retrying in %dms", identifier, outcome.message, delay_ms)
            await self._sleep(delay_ms / 1000.0)

        await self.emit(record)
        return record
