"""
Data models for the SiteMapper crawler.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple


@dataclass(slots=True)
class CrawlNode:
    """One crawled page and the same-domain pages successfully crawled from it."""

    url: str
    children: List[CrawlNode] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Nested ``{"url", "links"}`` mapping, the wire shape of the ``/crawl`` endpoint."""
        return {"url": self.url, "links": [child.to_dict() for child in self.children]}

    def walk(self, depth: int = 0) -> Iterator[Tuple[CrawlNode, int]]:
        """Pre-order traversal yielding ``(node, depth)`` pairs."""
        yield self, depth
        for child in self.children:
            yield from child.walk(depth + 1)

    def urls(self) -> List[str]:
        """Flattened list of every URL in the tree, root first."""
        return [node.url for node, _ in self.walk()]


@dataclass(frozen=True, slots=True)
class CrawlTask:
    """Unit of work submitted to the orchestrator."""

    url: str
    depth: int


class CancelToken:
    """Cooperative cancellation flag shared by every task of one crawl invocation."""

    __slots__ = ("_cancelled", "_reason")

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._cancelled:
            self._cancelled = True
            self._reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> Optional[str]:
        return self._reason
