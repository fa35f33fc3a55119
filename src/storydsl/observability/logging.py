"""Structured logging for StoryDSL.

The engine logs snake_case events with key/value context (``dsl_parsed``,
``dsl_serialized``, ``dsl_apply_planned``...) through structlog, routed
into the standard library so two handlers can render them:

- Console: a rich handler on stderr showing ``event key=value`` lines.
  WARNING by default, INFO with ``-v``, DEBUG with ``-vv``;
  ``STORYDSL_LOG_LEVEL`` overrides the verbosity.
- File: with a log directory, every event at DEBUG and up is appended
  to ``{log_dir}/storydsl.jsonl`` as one JSON object per line.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from pathlib import Path

    from structlog.typing import EventDict, Processor, WrappedLogger

LOG_FILE_NAME = "storydsl.jsonl"
LOG_LEVEL_ENV = "STORYDSL_LOG_LEVEL"

_VERBOSITY_LEVELS = {0: logging.WARNING, 1: logging.INFO}
# Added by the shared chain; the console handler shows these itself.
_CONSOLE_HIDDEN_KEYS = ("timestamp", "level", "logger")

_configured = False
_file_handler: logging.FileHandler | None = None

_shared_processors: list[Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
]


def _render_console(_logger: WrappedLogger, _method_name: str, event_dict: EventDict) -> str:
    event = str(event_dict.pop("event", ""))
    for key in _CONSOLE_HIDDEN_KEYS:
        event_dict.pop(key, None)
    context = " ".join(f"{key}={value}" for key, value in event_dict.items())
    return f"{event} {context}".rstrip()


def console_level(verbosity: int) -> int:
    """Console threshold for a ``-v`` count, unless ``STORYDSL_LOG_LEVEL`` names a level."""
    name = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    level = logging.getLevelNamesMapping().get(name) if name else None
    if level is not None:
        return level
    return _VERBOSITY_LEVELS.get(verbosity, logging.DEBUG)


def _console_handler(level: int) -> logging.Handler:
    # Events carry file paths and story text, so rich markup stays off.
    handler = RichHandler(
        console=Console(stderr=True),
        level=level,
        markup=False,
        show_time=level <= logging.INFO,
        show_path=level <= logging.DEBUG,
    )
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _render_console,
            ],
            foreign_pre_chain=_shared_processors,
        )
    )
    return handler


def _jsonl_handler(log_dir: Path) -> logging.FileHandler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_dir / LOG_FILE_NAME, mode="a", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            foreign_pre_chain=_shared_processors,
        )
    )
    return handler


def configure_logging(verbosity: int = 0, log_dir: Path | None = None) -> None:
    """Route structlog events to the console and, optionally, a JSONL file.

    Safe to call repeatedly; handlers from an earlier call are replaced
    and a previous log file is closed.

    Args:
        verbosity: Number of ``-v`` flags. 0=WARNING, 1=INFO, 2+=DEBUG.
        log_dir: Directory for ``storydsl.jsonl``. No file logging if None.
    """
    global _configured, _file_handler

    close_file_logging()

    level = console_level(verbosity)
    handlers = [_console_handler(level)]
    if log_dir is not None:
        _file_handler = _jsonl_handler(log_dir)
        handlers.append(_file_handler)

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(min(handler.level for handler in handlers))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, configuring console logging on first use.

    Args:
        name: Logger name (typically __name__).
    """
    if not _configured:
        configure_logging()

    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


def bind_command(command: str | None, **context: Any) -> None:
    """Start a fresh log context for one CLI command.

    Every event logged until the next call carries ``command`` plus the
    extra key/value pairs.
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(command=command, **context)


def close_file_logging() -> None:
    """Detach and close the JSONL handler, if one is open."""
    global _file_handler
    if _file_handler is None:
        return
    logging.getLogger().removeHandler(_file_handler)
    _file_handler.close()
    _file_handler = None
