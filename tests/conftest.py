# File: tests/conftest.py
from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, Union

import pytest
import pytest_asyncio
from aiohttp import web

from site_mapper.config import CrawlerConfig

Page = Union[str, int, Callable[[web.Request], Awaitable[web.StreamResponse]]]


def pytest_configure(config):
    """Register custom markers so that `--strict-markers` does not fail."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


class FakeSite:
    """
    Catch-all aiohttp handler serving canned pages.

    A page is HTML text, an HTTP status code, or an async handler.
    ``robots`` is robots.txt text, a status code, or None for 404.
    Every request is counted in ``hits`` and concurrent requests in ``peak``.
    """

    def __init__(
        self,
        pages: Optional[Dict[str, Page]] = None,
        robots: Union[str, int, None] = None,
        delay: float = 0.0,
    ) -> None:
        self.pages: Dict[str, Page] = pages or {}
        self.robots = robots
        self.delay = delay
        self.base = ""
        self.hits: Counter[str] = Counter()
        self.user_agents: List[str] = []
        self.active = 0
        self.peak = 0

    def page_hits(self) -> Counter[str]:
        return Counter({path: n for path, n in self.hits.items() if path != "/robots.txt"})

    async def handle(self, request: web.Request) -> web.StreamResponse:
        self.hits[request.path] += 1
        self.user_agents.append(request.headers.get("User-Agent", ""))
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if request.path == "/robots.txt":
                return self._robots()
            page = self.pages.get(request.path)
            if page is None:
                raise web.HTTPNotFound()
            if isinstance(page, int):
                return web.Response(status=page)
            if isinstance(page, str):
                return web.Response(text=page, content_type="text/html")
            return await page(request)
        finally:
            self.active -= 1

    def _robots(self) -> web.Response:
        if self.robots is None:
            raise web.HTTPNotFound()
        if isinstance(self.robots, int):
            return web.Response(status=self.robots)
        return web.Response(text=self.robots, content_type="text/plain")


@pytest_asyncio.fixture
async def serve_site(unused_tcp_port_factory) -> AsyncIterator[Callable[[FakeSite], Awaitable[str]]]:
    """Start FakeSite instances on free ports; yields a coroutine returning the base URL."""
    runners: List[web.AppRunner] = []

    async def _serve(site: FakeSite) -> str:
        app = web.Application()
        app.router.add_route("GET", "/{tail:.*}", site.handle)
        runner = web.AppRunner(app)
        await runner.setup()
        port = unused_tcp_port_factory()
        await web.TCPSite(runner, "127.0.0.1", port).start()
        runners.append(runner)
        site.base = f"http://127.0.0.1:{port}"
        return site.base

    try:
        yield _serve
    finally:
        for runner in runners:
            await runner.cleanup()


@pytest.fixture()
def crawler_config() -> CrawlerConfig:
    """Small, fast configuration for crawler tests."""
    return CrawlerConfig(
        max_depth=2,
        max_concurrency=4,
        timeout=2.0,
        user_agents=["TestAgent/1.0"],
    )


@pytest.fixture(autouse=True)
def _restore_project_logger():
    """CLI tests install handlers on the project logger; undo that after each test."""
    lg = logging.getLogger("SiteMapper")
    handlers, level, propagate = list(lg.handlers), lg.level, lg.propagate
    yield
    lg.handlers[:] = handlers
    lg.setLevel(level)
    lg.propagate = propagate
