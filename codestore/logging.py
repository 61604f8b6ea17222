"""Logging setup shared by the CLI and the HTTP service.

uvicorn is started with ``log_config=None`` so it never installs its own
handlers. :func:`configure_logging` attaches one set of handlers to the
``codestore`` hierarchy and to uvicorn's loggers, which keeps request and
storage messages in a single stream with a single format.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List

ROOT_LOGGER = "codestore"
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

CONSOLE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s %(process)d %(levelname)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``codestore.<name>``, or the package logger itself."""
    if not name:
        return logging.getLogger(ROOT_LOGGER)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def build_handlers(level: int, log_file: Path | None = None) -> List[logging.Handler]:
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    handlers: List[logging.Handler] = [console]

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(sink)

    for handler in handlers:
        handler.setLevel(level)
    return handlers


def _install(logger: logging.Logger, handlers: Iterable[logging.Handler], level: int) -> None:
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def configure_logging(
    *,
    verbose: bool = False,
    log_file: Path | None = None,
    access_log: bool = True,
) -> logging.Logger:
    """Route codestore and uvicorn output through shared handlers.

    ``verbose`` drops the threshold to DEBUG for codestore only; uvicorn stays
    at INFO either way. Calling this again replaces the previous handlers.
    """
    level = logging.DEBUG if verbose else logging.INFO
    handlers = build_handlers(level, log_file)

    package_logger = logging.getLogger(ROOT_LOGGER)
    _install(package_logger, handlers, level)

    # uvicorn.error and uvicorn.access are children of "uvicorn"; handlers sit
    # on the parent only so each record is emitted once.
    server = logging.getLogger(SERVER_LOGGERS[0])
    _install(server, handlers, logging.INFO)
    for name in SERVER_LOGGERS[1:]:
        child = logging.getLogger(name)
        for existing in list(child.handlers):
            child.removeHandler(existing)
        child.propagate = True
    logging.getLogger("uvicorn.access").disabled = not access_log

    return package_logger


__all__ = ["build_handlers", "configure_logging", "get_logger"]
