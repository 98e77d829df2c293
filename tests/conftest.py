from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional

import pytest

from textcheck.workflows.http_fetch import FetchFailure, FetchOutcome, FetchSuccess

WELCOME_PAGE = '<html><body><h3 class="mb-1 text-center">Bienvenido a Udeki</h3></body></html>'
EMPTY_PAGE = "<html><body><p>Nada por aqui</p></body></html>"


class StubFetcher:
    """Scripted fetcher: ``responder(url, call_number)`` returns the outcome."""

    def __init__(
        self,
        responder: Callable[[str, int], FetchOutcome],
        delay: Optional[Callable[[str], float]] = None,
    ) -> None:
        self.responder = responder
        self.delay = delay
        self.calls: List[str] = []
        self.per_url: Dict[str, int] = {}

    async def fetch(self, url: str, timeout_ms: int) -> FetchOutcome:
        self.calls.append(url)
        count = self.per_url.get(url, 0) + 1
        self.per_url[url] = count
        if self.delay is not None:
            await asyncio.sleep(self.delay(url))
        return self.responder(url, count)


async def no_sleep(seconds: float) -> None:
    await asyncio.sleep(0)


def ok(body: str = WELCOME_PAGE, status: int = 200) -> FetchSuccess:
    return FetchSuccess(status=status, body=body, elapsed_ms=5)


def timeout() -> FetchFailure:
    return FetchFailure("timeout", "timed out after 10ms")


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def recording_sleep(sleeps):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)
        await asyncio.sleep(0)

    return _sleep
