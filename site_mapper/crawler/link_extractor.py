# site_mapper/crawler/link_extractor.py
"""
Streaming link extraction for SiteMapper.

The body is fed chunk by chunk into an lxml HTML parser driven by a parser
target, so no document tree is ever built; only ``<a href>`` values are kept.
"""
from __future__ import annotations

from typing import AsyncIterator, Dict, List, Optional

from lxml import etree

from site_mapper.logger import logger
from site_mapper.utils import resolve_url


class _AnchorTarget:
    """lxml parser target collecting ``href`` values of anchor start tags."""

    def __init__(self) -> None:
        self.hrefs: List[str] = []

    def start(self, tag: str, attrib: Dict[str, str]) -> None:
        if tag.lower() == "a":
            href = attrib.get("href")
            if href is not None:
                self.hrefs.append(href)

    def close(self) -> None:
        return None


async def extract_links(
    body: AsyncIterator[bytes],
    base_url: str,
    encoding: Optional[str] = None,
) -> AsyncIterator[str]:
    """
    Yield absolute URLs of every anchor ``href`` in the streamed HTML body.

    Unresolvable hrefs are skipped. A parser error ends the sequence
    cleanly; links found before the error are still yielded.
    """
    target = _AnchorTarget()
    try:
        parser = etree.HTMLParser(target=target, encoding=encoding)
    except LookupError:
        logger.debug("Unknown charset %r for %s, letting lxml guess", encoding, base_url)
        parser = etree.HTMLParser(target=target)

    def drain() -> List[str]:
        found = [resolve_url(base_url, href) for href in target.hrefs]
        target.hrefs.clear()
        return [url for url in found if url]

    async for chunk in body:
        try:
            parser.feed(chunk)
        except etree.LxmlError as exc:
            logger.debug("HTML parse error on %s: %s", base_url, exc)
            for url in drain():
                yield url
            return
        for url in drain():
            yield url

    try:
        parser.close()
    except etree.LxmlError as exc:
        # raised e.g. for an empty document
        logger.debug("HTML parse error on %s: %s", base_url, exc)
    for url in drain():
        yield url
