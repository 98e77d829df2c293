from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol, Union

import aiohttp

from .check_config import USER_AGENT

logger = logging.getLogger(__name__)

ERROR_TIMEOUT = "timeout"
ERROR_NETWORK = "network"


@dataclass(frozen=True)
class FetchSuccess:
    """A response was received; any status code counts, 4xx/5xx included."""

    status: int
    body: str
    elapsed_ms: int


@dataclass(frozen=True)
class FetchFailure:
    """No usable response: the call timed out or the transport failed."""

    kind: str
    message: str


FetchOutcome = Union[FetchSuccess, FetchFailure]


class Fetcher(Protocol):
    async def fetch(self, url: str, timeout_ms: int) -> FetchOutcome:  # pragma: no cover - protocol
        ...


class HttpFetcher:
    """One timeout-bounded GET per call over a shared aiohttp session.

    Use as an async context manager; the session is opened on enter and
    closed on exit.
    """

    def __init__(
        self,
        *,
        user_agent: str = USER_AGENT,
        connection_limit: int = 0,
    ) -> None:
        self.user_agent = user_agent
        self.connection_limit = connection_limit
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "HttpFetcher":
        if self._session is None:
            connector = aiohttp.TCPConnector(limit=self.connection_limit)
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"User-Agent": self.user_agent},
            )
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def fetch(self, url: str, timeout_ms: int) -> FetchOutcome:
        if self._session is None:
            raise RuntimeError("HttpFetcher used outside of 'async with'")
        # The deadline covers connect, headers and body read.
        timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000.0)
        start = time.perf_counter()
        try:
            async with self._session.get(url, timeout=timeout, allow_redirects=True) as resp:
                status = resp.status
                raw_bytes = await resp.read()
        except asyncio.TimeoutError:
            logger.debug("timeout after %dms: %s", timeout_ms, url)
            return FetchFailure(ERROR_TIMEOUT, f"timed out after {timeout_ms}ms")
        except aiohttp.ClientError as exc:
            message = str(exc) or type(exc).__name__
            logger.debug("network error for %s: %s", url, message)
            return FetchFailure(ERROR_NETWORK, message)
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        body = raw_bytes.decode("utf-8", "ignore") if raw_bytes else ""
        return FetchSuccess(status=status, body=body, elapsed_ms=elapsed_ms)
