"""
Exception taxonomy of the crawl engine.

Only :class:`InvalidURL` for the start URL ever reaches the caller of
``crawl``; every other failure is contained at task level.
"""
from __future__ import annotations

from typing import Optional


class CrawlError(Exception):
    """Base class for crawl engine errors."""


class InvalidURL(CrawlError, ValueError):
    """A URL could not be parsed or is not an absolute http(s) URL."""

    def __init__(self, url: str, reason: str = "") -> None:
        self.url = url
        self.reason = reason
        message = f"invalid URL {url!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class FetchFailure(CrawlError):
    """Network error, timeout or non-2xx status for a single request."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None) -> None:
        self.url = url
        self.reason = reason
        self.status = status
        super().__init__(f"{url}: {reason}")


class RobotsUnavailable(CrawlError):
    """robots.txt could not be retrieved; the gate fails open."""

    def __init__(self, domain: str, reason: str) -> None:
        self.domain = domain
        self.reason = reason
        super().__init__(f"robots.txt unavailable for {domain}: {reason}")


class ParseFailure(CrawlError):
    """robots.txt or HTML body could not be decoded or parsed."""
