# File: site_mapper/server.py
"""site_mapper.server: HTTP-обёртка над ядром (JSON API) и простой веб-интерфейс.

Маршруты:
  GET /crawl?url=...[&depth=N]   дерево страниц в JSON
  GET /                          форма ввода URL
  GET /sitemap?url=...           плоский список найденных ссылок (HTML)
"""

from __future__ import annotations

import time
from typing import AsyncIterator, Optional

from aiohttp import web

from site_mapper.config import CrawlerConfig
from site_mapper.crawler.crawler import SiteCrawler
from site_mapper.crawler.errors import InvalidURL
from site_mapper.logger import logger
from site_mapper.report.html_report import get_environment

__all__ = ["create_app", "CONFIG_KEY", "CRAWLER_KEY"]

CONFIG_KEY = web.AppKey("config", CrawlerConfig)
CRAWLER_KEY = web.AppKey("crawler", SiteCrawler)


def _render(template: str, **context) -> web.Response:
    html = get_environment().get_template(template).render(**context)
    return web.Response(text=html, content_type="text/html")


def _parse_depth(request: web.Request) -> Optional[int]:
    raw = request.query.get("depth")
    if raw is None:
        return None
    try:
        depth = int(raw)
    except ValueError:
        raise web.HTTPBadRequest(text="depth must be an integer")
    if depth < 0:
        raise web.HTTPBadRequest(text="depth must be >= 0")
    return depth


async def handle_crawl(request: web.Request) -> web.Response:
    start_url = request.query.get("url", "").strip()
    if not start_url:
        logger.warning("Missing url parameter")
        raise web.HTTPBadRequest(text="url parameter is required")
    depth = _parse_depth(request)

    started = time.monotonic()
    logger.info("Starting crawl for URL: %s", start_url)
    try:
        root = await request.app[CRAWLER_KEY].crawl(start_url, depth)
    except InvalidURL as exc:
        raise web.HTTPBadRequest(text=str(exc))
    logger.info("Crawling completed in %.2fs", time.monotonic() - started)
    return web.json_response(root.to_dict())


async def handle_index(request: web.Request) -> web.Response:
    return _render("index.html.j2", url="", error=None, links=[])


async def handle_sitemap(request: web.Request) -> web.Response:
    start_url = request.query.get("url", "").strip()
    if not start_url:
        return _render("index.html.j2", url="", error="URL is required.", links=[])
    try:
        root = await request.app[CRAWLER_KEY].crawl(start_url)
    except InvalidURL:
        return _render("index.html.j2", url=start_url, error="Invalid URL format.", links=[])
    return _render("index.html.j2", url=start_url, error=None, links=root.urls())


async def _crawler_ctx(app: web.Application) -> AsyncIterator[None]:
    async with SiteCrawler(app[CONFIG_KEY]) as crawler:
        app[CRAWLER_KEY] = crawler
        yield


def create_app(config: Optional[CrawlerConfig] = None) -> web.Application:
    """Собирает aiohttp-приложение; один SiteCrawler живёт всё время работы сервера."""
    app = web.Application()
    app[CONFIG_KEY] = config or CrawlerConfig()
    app.cleanup_ctx.append(_crawler_ctx)
    app.router.add_get("/", handle_index)
    app.router.add_get("/crawl", handle_crawl)
    app.router.add_get("/sitemap", handle_sitemap)
    return app
