# File: site_mapper/utils.py
"""site_mapper.utils: канонизация URL, разрешение относительных ссылок и фильтр домена."""

from __future__ import annotations

from typing import Sequence
from urllib.parse import urljoin, urlsplit, urlunsplit

from site_mapper.crawler.errors import InvalidURL
from site_mapper.logger import logger

__all__: Sequence[str] = (
    "normalize_url",
    "resolve_url",
    "is_same_domain",
    "extract_domain",
)

_WEB_SCHEMES = ("http", "https")


def normalize_url(url: str) -> str:
    """Канонический URL (ключ дедупликации): без query, фрагмента и хвостового слеша.

    Схема и хост приводятся к нижнему регистру, регистр пути сохраняется.
    Бросает InvalidURL, если URL не разбирается или не является http(s)-адресом с хостом.
    """
    try:
        parsed = urlsplit(url.strip())
        # .port валидирует порт и бросает ValueError на мусоре
        parsed.port
    except (AttributeError, ValueError) as exc:
        raise InvalidURL(url, str(exc)) from exc

    scheme = parsed.scheme.lower()
    if scheme not in _WEB_SCHEMES or not parsed.hostname:
        raise InvalidURL(url, "expected an absolute http(s) URL")

    path = parsed.path.rstrip("/")
    normalized = urlunsplit((scheme, parsed.netloc.lower(), path, "", ""))
    logger.debug("Normalized URL: %s -> %s", url, normalized)
    return normalized


def resolve_url(base: str, href: str) -> str:
    """Абсолютный URL для href относительно base или "" если что-то не разбирается.

    Абсолютный href возвращается как есть.
    """
    href = href.strip()
    try:
        if urlsplit(href).scheme:
            return href
        urlsplit(base)
        return urljoin(base, href)
    except ValueError as exc:
        logger.debug("Cannot resolve %r against %s: %s", href, base, exc)
        return ""


def is_same_domain(base: str, candidate: str) -> bool:
    """Сравнивает только имена хостов: схема и порт не учитываются."""
    try:
        base_host = urlsplit(base).hostname
        candidate_host = urlsplit(candidate).hostname
    except ValueError:
        return False
    return bool(base_host) and base_host == candidate_host


def extract_domain(url: str) -> str:
    """Возвращает origin вида scheme://netloc (ключ кэша robots.txt)."""
    parsed = urlsplit(url)
    return f"{parsed.scheme}://{parsed.netloc}"
