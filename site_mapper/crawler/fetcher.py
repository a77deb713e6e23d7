# site_mapper/crawler/fetcher.py
"""
Fetcher module: HTTP GET behind a counting admission gate, with a per-request
timeout and a rotating User-Agent identity.
"""
from __future__ import annotations

import asyncio
import random
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional, Sequence

from aiohttp import ClientError, ClientSession, ClientTimeout

from site_mapper.crawler.errors import FetchFailure
from site_mapper.crawler.models import CancelToken


@dataclass(slots=True)
class FetchResponse:
    """A successful (2xx) response whose body has not been read yet."""

    url: str
    status: int
    encoding: Optional[str]
    body: AsyncIterator[bytes]

    async def read(self) -> bytes:
        """Drain the body stream into memory (used for small documents like robots.txt)."""
        return b"".join([chunk async for chunk in self.body])


class Fetcher:
    """Handles HTTP fetching for one crawl invocation.

    At most ``max_concurrency`` requests are in flight at any moment; the slot
    is held while the body is streamed and released on every exit path.
    Once ``cancel_token`` fires, callers still queued at the gate get a
    FetchFailure instead of a request.
    """

    def __init__(
        self,
        session: ClientSession,
        user_agents: Sequence[str],
        max_concurrency: int = 10,
        timeout: float = 10.0,
        chunk_size: int = 8192,
        choose: Callable[[Sequence[str]], str] = random.choice,
        cancel_token: Optional[CancelToken] = None,
    ) -> None:
        if not user_agents:
            raise ValueError("user_agents must not be empty")
        self.session = session
        self.user_agents = tuple(user_agents)
        self.max_concurrency = max_concurrency
        self._timeout = ClientTimeout(total=timeout)
        self._chunk_size = chunk_size
        self._choose = choose
        self._cancel_token = cancel_token
        self._gate = asyncio.Semaphore(max_concurrency)
        self.in_flight = 0
        self.peak_in_flight = 0
        self.requests = 0

    def pick_user_agent(self) -> str:
        """Random identity from the pool; rotation only reduces trivial fingerprinting."""
        return self._choose(self.user_agents)

    @asynccontextmanager
    async def fetch(self, url: str, user_agent: Optional[str] = None) -> AsyncIterator[FetchResponse]:
        """
        GET ``url`` and yield a FetchResponse with a streaming body.

        Raises FetchFailure on network errors, timeouts (also while the body
        is being consumed), non-2xx statuses and a cancellation that arrived
        while waiting for a slot.
        """
        headers = {"User-Agent": user_agent or self.pick_user_agent()}
        async with self._gate:
            if self._cancel_token is not None and self._cancel_token.cancelled:
                raise FetchFailure(url, "cancelled")
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            self.requests += 1
            try:
                async with self.session.get(
                    url, headers=headers, timeout=self._timeout, raise_for_status=False
                ) as resp:
                    if not 200 <= resp.status < 300:
                        raise FetchFailure(url, f"HTTP {resp.status}", status=resp.status)
                    yield FetchResponse(
                        url=str(resp.url),
                        status=resp.status,
                        encoding=resp.charset,
                        body=resp.content.iter_chunked(self._chunk_size),
                    )
            except asyncio.TimeoutError as exc:
                raise FetchFailure(url, "timeout") from exc
            except ClientError as exc:
                raise FetchFailure(url, f"{type(exc).__name__}: {exc}") from exc
            finally:
                self.in_flight -= 1
