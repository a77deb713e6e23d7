# site_mapper/__init__.py
"""
SiteMapper package initializer.
Defines package version and exposes the crawl entry points.
"""
__version__ = "0.1.0"

from site_mapper.config import CrawlerConfig, load_config
from site_mapper.crawler.crawler import SiteCrawler, crawl
from site_mapper.crawler.errors import InvalidURL
from site_mapper.crawler.models import CancelToken, CrawlNode

__all__ = [
    "__version__",
    "CancelToken",
    "CrawlNode",
    "CrawlerConfig",
    "InvalidURL",
    "SiteCrawler",
    "crawl",
    "load_config",
]
