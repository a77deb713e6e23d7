# File: site_mapper/engine.py
"""site_mapper.engine: точка входа в ядро обхода для CLI."""

from __future__ import annotations

from typing import Optional

from site_mapper.config import CrawlerConfig
from site_mapper.crawler.crawler import SiteCrawler
from site_mapper.crawler.models import CancelToken, CrawlNode
from site_mapper.logger import logger

__all__ = ["start_crawl"]


async def start_crawl(
    cfg: CrawlerConfig,
    start_url: str,
    max_depth: Optional[int] = None,
    cancel_token: Optional[CancelToken] = None,
) -> CrawlNode:
    """
    Запускает SiteCrawler в контексте и возвращает дерево страниц.

    Parameters
    ----------
    cfg : CrawlerConfig
        Конфигурация обхода.
    start_url : str
        Стартовый URL.
    max_depth : int, optional
        Глубина обхода; по умолчанию ``cfg.max_depth``.

    Returns
    -------
    CrawlNode
        Корень карты сайта.
    """
    logger.info("Starting crawl of %s", start_url)
    async with SiteCrawler(cfg) as crawler:
        return await crawler.crawl(start_url, max_depth, cancel_token=cancel_token)
