# === FILE: site_mapper/crawler/crawler.py ===
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set

from aiohttp import ClientSession

from site_mapper.config import CrawlerConfig
from site_mapper.crawler.errors import FetchFailure, InvalidURL
from site_mapper.crawler.fetcher import Fetcher
from site_mapper.crawler.link_extractor import extract_links
from site_mapper.crawler.models import CancelToken, CrawlNode, CrawlTask
from site_mapper.crawler.robots import RobotsPolicy
from site_mapper.logger import log_event, logger
from site_mapper.utils import is_same_domain, normalize_url

__all__ = ("SiteCrawler", "CrawlContext", "VisitedSet", "crawl")


class VisitedSet:
    """Canonical URLs claimed during one crawl invocation.

    ``claim`` is the only way in: membership test and insertion happen in one
    critical section, so exactly one task wins each URL.
    """

    def __init__(self, limit: Optional[int] = None) -> None:
        self._urls: Set[str] = set()
        self._lock = asyncio.Lock()
        self.limit = limit

    async def claim(self, url: str) -> bool:
        async with self._lock:
            if url in self._urls:
                return False
            if self.limit is not None and len(self._urls) >= self.limit:
                return False
            self._urls.add(url)
            return True

    def __contains__(self, url: object) -> bool:
        return url in self._urls

    def __len__(self) -> int:
        return len(self._urls)


@dataclass(slots=True)
class CrawlContext:
    """State scoped to a single crawl invocation and passed to every task."""

    max_depth: int
    visited: VisitedSet
    fetcher: Fetcher
    robots: RobotsPolicy
    token: CancelToken


class SiteCrawler:
    """Асинхронный краулер: дерево страниц одного домена с учётом robots.txt."""

    def __init__(self, config: Optional[CrawlerConfig] = None, session: Optional[ClientSession] = None) -> None:
        self.config = config or CrawlerConfig()
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self) -> SiteCrawler:
        if self.session is None:
            self.session = ClientSession(raise_for_status=False)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()

    async def crawl(
        self,
        start_url: str,
        max_depth: Optional[int] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> CrawlNode:
        """Crawl from ``start_url`` and return the sitemap tree.

        Raises InvalidURL when the start URL is unusable; every other failure
        only prunes the branch where it happened.
        """
        if not self.session:
            raise RuntimeError("Session not initialized")
        root_url = normalize_url(start_url)
        depth_limit = self.config.max_depth if max_depth is None else max_depth
        if depth_limit < 0:
            raise ValueError("max_depth must be >= 0")

        ctx = self._new_context(depth_limit, cancel_token or CancelToken())
        deadline = None
        if self.config.crawl_timeout is not None:
            loop = asyncio.get_running_loop()
            deadline = loop.call_later(self.config.crawl_timeout, ctx.token.cancel, "crawl timeout")

        logger.info("Старт обхода: %s (max depth %d)", root_url, depth_limit)
        start = time.monotonic()
        try:
            root = await self._crawl_task(ctx, CrawlTask(root_url, 0))
        finally:
            if deadline is not None:
                deadline.cancel()
        if root is None:
            root = CrawlNode(root_url)

        log_event(
            "crawl-finished",
            url=root_url,
            pages=len(root.urls()),
            requests=ctx.fetcher.requests,
            seconds=f"{time.monotonic() - start:.2f}",
            cancelled=ctx.token.cancelled,
        )
        return root

    def _new_context(self, max_depth: int, token: CancelToken) -> CrawlContext:
        assert self.session is not None
        fetcher = Fetcher(
            self.session,
            self.config.user_agents,
            max_concurrency=self.config.max_concurrency,
            timeout=self.config.timeout,
            chunk_size=self.config.chunk_size,
            cancel_token=token,
        )
        return CrawlContext(
            max_depth=max_depth,
            visited=VisitedSet(self.config.max_pages),
            fetcher=fetcher,
            robots=RobotsPolicy(fetcher, enabled=self.config.respect_robots),
            token=token,
        )

    async def _crawl_task(self, ctx: CrawlContext, task: CrawlTask) -> Optional[CrawlNode]:
        try:
            url = normalize_url(task.url)
        except InvalidURL as exc:
            log_event("invalid-url", logging.DEBUG, url=task.url, reason=exc.reason)
            return None

        if self._is_cancelled(ctx, url, task.depth):
            return None
        if not await ctx.visited.claim(url):
            reason = "skipped:visited" if url in ctx.visited else "skipped:page-limit"
            log_event(reason, logging.DEBUG, url=url, depth=task.depth)
            return None
        if task.depth > ctx.max_depth:
            log_event("skipped:depth", logging.DEBUG, url=url, depth=task.depth)
            return None

        user_agent = ctx.fetcher.pick_user_agent()
        if self._is_cancelled(ctx, url, task.depth):
            return None
        if not await ctx.robots.allowed_url(url, user_agent):
            log_event("robots-blocked", url=url, depth=task.depth)
            return None
        if self._is_cancelled(ctx, url, task.depth):
            return None

        log_event("crawling", url=url, depth=task.depth)
        links: List[str] = []
        try:
            async with ctx.fetcher.fetch(url, user_agent) as response:
                # pages at the depth limit are confirmed reachable but not expanded
                if task.depth < ctx.max_depth:
                    async for link in extract_links(response.body, response.url, response.encoding):
                        links.append(link)
        except FetchFailure as exc:
            if self._is_cancelled(ctx, url, task.depth):
                return None
            log_event("fetch-error", logging.WARNING, url=url, depth=task.depth, reason=exc.reason)
            return None

        node = CrawlNode(url)
        candidates = self._expand(ctx, url, links)
        if not candidates or self._is_cancelled(ctx, url, task.depth):
            return node

        children = [
            asyncio.create_task(self._crawl_task(ctx, CrawlTask(link, task.depth + 1)))
            for link in candidates
        ]
        for child in await asyncio.gather(*children):
            if child is not None:
                node.children.append(child)
        return node

    @staticmethod
    def _expand(ctx: CrawlContext, page_url: str, links: Iterable[str]) -> List[str]:
        """Canonical, in-scope, not yet visited links in first-seen order."""
        seen: Set[str] = set()
        candidates: List[str] = []
        for link in links:
            try:
                canonical = normalize_url(link)
            except InvalidURL as exc:
                log_event("invalid-url", logging.DEBUG, url=link, reason=exc.reason)
                continue
            if not is_same_domain(page_url, canonical):
                log_event("skipped:scope", logging.DEBUG, url=canonical)
                continue
            if canonical in seen or canonical in ctx.visited:
                continue
            seen.add(canonical)
            candidates.append(canonical)
        return candidates

    @staticmethod
    def _is_cancelled(ctx: CrawlContext, url: str, depth: int) -> bool:
        if ctx.token.cancelled:
            log_event("skipped:cancelled", logging.DEBUG, url=url, depth=depth, reason=ctx.token.reason)
            return True
        return False


async def crawl(
    start_url: str,
    max_depth: Optional[int] = None,
    *,
    config: Optional[CrawlerConfig] = None,
    cancel_token: Optional[CancelToken] = None,
) -> CrawlNode:
    """Crawl ``start_url`` with a throwaway SiteCrawler (own HTTP session)."""
    async with SiteCrawler(config) as crawler:
        return await crawler.crawl(start_url, max_depth, cancel_token=cancel_token)
