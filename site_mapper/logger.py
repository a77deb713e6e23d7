# === FILE: site_mapper/logger.py ===
"""Logging configuration for the **SiteMapper** project.

Highlights
----------
* Single, importable instance :data:`logger` – simply::

      from site_mapper.logger import logger
      logger.info("Crawl started")

* The crawl core only *emits* records; handlers are installed by the host
  process through :func:`init_logging` (the CLI does this on start-up).
* :func:`log_event` renders structured crawl events as
  ``"<event> key=value ..."`` and attaches the event name to the record.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Final, Union

_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_LOGGER_NAME: Final[str] = "SiteMapper"

_LevelT = Union[int, str]


def init_logging(level: _LevelT = "INFO", log_file: str | Path | None = None) -> logging.Logger:
    """Replace the project logger's handlers: stdout, plus ``log_file`` if given."""
    lg = logging.getLogger(_LOGGER_NAME)
    lg.setLevel(level)
    lg.handlers.clear()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        handlers.append(logging.FileHandler(str(log_file), encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(logging.Formatter(_FORMAT))
        lg.addHandler(handler)

    lg.propagate = False
    return lg


def log_event(event: str, level: int = logging.INFO, **fields: Any) -> None:
    """Emit a structured crawl event such as ``crawling`` or ``skipped:depth``."""
    if not logger.isEnabledFor(level):
        return
    rendered = " ".join(f"{key}={value}" for key, value in fields.items())
    logger.log(level, "%s %s", event, rendered, extra={"event": event, "fields": fields})


logger: logging.Logger = logging.getLogger(_LOGGER_NAME)

__all__ = ["logger", "init_logging", "log_event"]
