"""structlog setup for drivetune.

Every event, whether emitted through structlog or plain :mod:`logging`, is
rendered by a ``ProcessorFormatter`` attached to a root handler:

- ``drivetune.log``: key=value text, every event
- ``catalog.log``: one JSON object per line, ``drivetune.catalog`` events only
- stderr (optional): coloured console output for interactive runs

The files rotate at 10 MB, keep 5 backups and are created on first write.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog

_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5
_CATALOG_LOGGER = "drivetune.catalog"
_NOISY_LOGGERS = ("httpx", "httpcore", "mutagen")

_pre_chain: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.ExtraAdder(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
]


def _formatter(renderer: structlog.types.Processor) -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=_pre_chain)


def _rotating(path: Path, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUP_COUNT,
        encoding="utf-8",
        delay=True,
    )
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_level: str = "info", log_dir: Path | None = None, *, console: bool = False) -> None:
    """Route structlog through stdlib logging and install the handlers.

    An unknown *log_level* name falls back to INFO.  Without *log_dir* no file
    handlers are installed; *console* adds a stderr handler.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[*_pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = []
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(_rotating(log_dir / "drivetune.log", _formatter(structlog.dev.ConsoleRenderer(colors=False))))
        catalog = _rotating(log_dir / "catalog.log", _formatter(structlog.processors.JSONRenderer()))
        catalog.addFilter(logging.Filter(_CATALOG_LOGGER))
        handlers.append(catalog)
    if console:
        stderr = logging.StreamHandler(sys.stderr)
        stderr.setFormatter(_formatter(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())))
        handlers.append(stderr)

    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
        old.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
