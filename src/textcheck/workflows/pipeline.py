"""One textcheck run: identifiers in, one CSV row per identifier out."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from ..core.errors import UnexpectedWorkerFault
from ..core.keys import K_LABEL_ERROR, K_LABEL_NO_MATCH
from .check_config import RunConfig
from .http_fetch import Fetcher, HttpFetcher
from .rate_limit import RateLimiter
from .result_sink import CsvResultSink, ResultRecord
from .scheduler import TaskQueue
from .worker import RetryingWorker, SleepFunc

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    output_path: Path
    total: int = 0
    matched: int = 0
    not_matched: int = 0
    errors: int = 0
    faults: int = 0
    written: int = 0
    runtime_seconds: float = 0.0
    labels: Dict[str, int] = field(default_factory=dict)

    def count(self, record: ResultRecord, match_label: str) -> None:
        self.labels[record.label] = self.labels.get(record.label, 0) + 1
        if record.label == match_label:
            self.matched += 1
        elif record.label == K_LABEL_NO_MATCH:
            self.not_matched += 1
        elif record.is_error:
            self.errors += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output_path": str(self.output_path),
            "total": self.total,
            "matched": self.matched,
            "not_matched": self.not_matched,
            "errors": self.errors,
            "faults": self.faults,
            "written": self.written,
            "runtime_seconds": round(self.runtime_seconds, 3),
            "labels": dict(self.labels),
        }


async def run_check(
    identifiers: Sequence[str],
    config: RunConfig,
    *,
    fetcher: Optional[Fetcher] = None,
    rng: Optional[random.Random] = None,
    sleep: SleepFunc = asyncio.sleep,
) -> RunSummary:
    """Fetch, classify and persist every identifier; return counts for the run.

    ``fetcher`` defaults to an :class:`HttpFetcher` bound to this run. Pass a
    stub to drive the pipeline without network access.
    """

    summary = RunSummary(output_path=config.output_path, total=len(identifiers))
    start = time.perf_counter()

    def _progress(completed: int, total: int) -> None:
        if completed % config.progress_every == 0:
            logger.info("-> %d/%d", completed, total)

    rate_limiter = RateLimiter(config.requests_per_second, config.min_jitter_ms, rng=rng)

    async with CsvResultSink(config.output_path) as sink:

        async def _emit(record: ResultRecord) -> None:
            await sink.append(record)
            summary.count(record, config.match_label)

        async def _drive(active_fetcher: Fetcher) -> None:
            async def _process(identifier: str) -> None:
                url = config.url_for(identifier)
                emitted = False

                async def _emit_once(record: ResultRecord) -> None:
                    nonlocal emitted
                    await _emit(record)
                    emitted = True

                worker = RetryingWorker(
                    active_fetcher,
                    rate_limiter,
                    _emit_once,
                    expected_marker=config.expected_marker,
                    max_retries=config.max_retries,
                    timeout_ms=config.timeout_ms,
                    base_backoff_ms=config.base_backoff_ms,
                    fragment_rule=config.fragment_rule,
                    match_label=config.match_label,
                    sleep=sleep,
                )
                try:
                    await worker.process(identifier, url)
                except Exception as exc:
                    fault = UnexpectedWorkerFault(identifier, exc)
                    summary.faults += 1
                    logger.error("unexpected fault for %s: %s", identifier, fault, exc_info=exc)
                    if not emitted:
                        await _emit(
                            ResultRecord(
                                identifier=identifier,
                                url=url,
                                status=None,
                                elapsed_ms=None,
                                label=K_LABEL_ERROR,
                                detail=str(fault),
                            )
                        )

            queue = TaskQueue(config.concurrency, on_progress=_progress)
            await queue.run(identifiers, _process)

        if fetcher is not None:
            await _drive(fetcher)
        else:
            async with HttpFetcher(user_agent=config.user_agent, connection_limit=config.concurrency) as http:
                await _drive(http)
        summary.written = sink.written

    summary.runtime_seconds = time.perf_counter() - start
    return summary


def run_check_sync(identifiers: Sequence[str], config: RunConfig, **kwargs: Any) -> RunSummary:
    return asyncio.run(run_check(identifiers, config, **kwargs))
