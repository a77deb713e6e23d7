"""
Parser, checker and per-invocation cache for robots.txt rules.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from site_mapper.crawler.errors import FetchFailure, ParseFailure, RobotsUnavailable
from site_mapper.crawler.fetcher import Fetcher
from site_mapper.logger import log_event, logger
from site_mapper.utils import extract_domain


class RobotsTxtRules:
    """Parser and checker for robots.txt rules.

    Only ``User-agent``, ``Allow`` and ``Disallow`` are understood; rule values
    are plain path prefixes. An empty ``Disallow`` allows everything.
    """

    def __init__(self, text: str) -> None:
        self.groups: List[Dict[str, Any]] = []
        self._parse(text)

    @classmethod
    def from_bytes(cls, data: bytes, encoding: Optional[str] = None) -> RobotsTxtRules:
        """Decode a raw robots.txt body; undecodable input raises ParseFailure."""
        try:
            text = data.decode(encoding or "utf-8")
        except (LookupError, UnicodeDecodeError) as exc:
            raise ParseFailure(f"cannot decode robots.txt: {exc}") from exc
        return cls(text)

    def can_fetch(self, user_agent: str, path: str) -> bool:
        """Return True if the user_agent can fetch the given path under the rules.

        The longest matching rule wins; on a tie ``Allow`` beats ``Disallow``.
        """
        group = self._match_group(user_agent)
        if not group:
            return True
        best_len = -1
        allowed = True
        for directive, rule in group["directives"]:
            if not path.startswith(rule):
                continue
            if len(rule) > best_len or (len(rule) == best_len and directive == "allow"):
                best_len = len(rule)
                allowed = directive == "allow"
        return allowed

    def _parse(self, text: str) -> None:
        """Parse robots.txt content into user-agent groups and directives."""
        current: Optional[Dict[str, Any]] = None
        for line in text.splitlines():
            line = line.split("#", 1)[0].strip()
            if not line:
                continue
            key, _, val = line.partition(":")
            key = key.strip().lower()
            val = val.strip()
            if key == "user-agent":
                # consecutive User-agent lines share one group
                if current is None or current["directives"]:
                    current = {"agents": [], "directives": []}
                    self.groups.append(current)
                current["agents"].append(val.lower())
            elif key in ("allow", "disallow"):
                if current is None:
                    # rules before any User-agent line apply to everyone
                    current = {"agents": ["*"], "directives": []}
                    self.groups.append(current)
                if key == "disallow" and not val:
                    continue
                current["directives"].append((key, val))

    def _match_group(self, ua: str) -> Optional[Dict[str, Any]]:
        """Select the group whose agent token best matches the user-agent, else ``*``."""
        ua = ua.lower()
        best: Tuple[int, Optional[Dict[str, Any]]] = (0, None)
        fallback: Optional[Dict[str, Any]] = None
        for group in self.groups:
            for agent in group["agents"]:
                if agent == "*":
                    fallback = fallback or group
                elif agent and agent in ua and len(agent) > best[0]:
                    best = (len(agent), group)
        return best[1] or fallback


class RobotsPolicy:
    """Lazily fetched, per-domain robots.txt decisions for one crawl invocation.

    The first query for a domain fetches ``{domain}/robots.txt`` while
    concurrent queries for the same domain wait on a per-domain lock, so each
    domain is fetched once and its cached value never changes afterwards.
    Any failure to obtain the rules fails open.
    """

    def __init__(self, fetcher: Fetcher, enabled: bool = True) -> None:
        self._fetcher = fetcher
        self._enabled = enabled
        self._cache: Dict[str, Optional[RobotsTxtRules]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    async def allowed(self, domain: str, path: str, user_agent: str) -> bool:
        """Return True if ``user_agent`` may fetch ``path`` on ``domain``."""
        if not self._enabled:
            return True
        rules = await self._rules_for(domain, user_agent)
        if rules is None:
            return True
        return rules.can_fetch(user_agent, path or "/")

    async def allowed_url(self, url: str, user_agent: str) -> bool:
        return await self.allowed(extract_domain(url), urlsplit(url).path, user_agent)

    async def _rules_for(self, domain: str, user_agent: str) -> Optional[RobotsTxtRules]:
        if domain in self._cache:
            return self._cache[domain]
        lock = self._locks.setdefault(domain, asyncio.Lock())
        async with lock:
            if domain not in self._cache:
                try:
                    self._cache[domain] = await self._load(domain, user_agent)
                except (RobotsUnavailable, ParseFailure) as exc:
                    log_event("robots-unavailable", logging.WARNING, domain=domain, reason=exc)
                    self._cache[domain] = None
        return self._cache[domain]

    async def _load(self, domain: str, user_agent: str) -> RobotsTxtRules:
        robots_url = f"{domain}/robots.txt"
        try:
            async with self._fetcher.fetch(robots_url, user_agent) as response:
                data = await response.read()
        except FetchFailure as exc:
            raise RobotsUnavailable(domain, exc.reason) from exc
        rules = RobotsTxtRules.from_bytes(data, response.encoding)
        logger.debug("Loaded robots.txt for %s (%d groups)", domain, len(rules.groups))
        return rules
