"""High-level exports for the textcheck workflows."""

from .check_config import DEFAULT_FRAGMENT_RULE, FragmentRule, RunConfig, build_url
from .extract import ExtractionResult, extract_fragment
from .http_fetch import FetchFailure, FetchOutcome, FetchSuccess, HttpFetcher
from .id_loader import load_identifiers
from .pipeline import RunSummary, run_check, run_check_sync
from .rate_limit import RateLimiter
from .result_sink import CsvResultSink, ResultRecord, format_record
from .scheduler import SchedulerState, TaskQueue
from .worker import RetryingWorker, Task, WorkerState

__all__ = [
    "DEFAULT_FRAGMENT_RULE",
    "FragmentRule",
    "RunConfig",
    "build_url",
    "ExtractionResult",
    "extract_fragment",
    "FetchFailure",
    "FetchOutcome",
    "FetchSuccess",
    "HttpFetcher",
    "load_identifiers",
    "RunSummary",
    "run_check",
    "run_check_sync",
    "RateLimiter",
    "CsvResultSink",
    "ResultRecord",
    "format_record",
    "SchedulerState",
    "TaskQueue",
    "RetryingWorker",
    "Task",
    "WorkerState",
]
