# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Structured JSON logger for eagerfit.

Every log line is one JSON object. Training progress (epoch losses, checkpoint
events, evaluation results) is meant to be grepped and parsed, so nothing in
the package writes free-form text or calls print().

How this works:
  - The standard `logging` module does the routing; JsonFormatter turns each
    record into a single line of JSON.
  - Handlers live on the `eagerfit` package logger only: stdout always, a
    file optionally. Module loggers propagate to it and inherit its level.
  - `get_logger` is the one factory every module uses.

A line looks like:
  {"ts": "2026-...", "level": "INFO", "module": "eagerfit.training.engine.core",
   "msg": "Epoch complete", "epoch": 3, "total_loss": 41.2}
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, TextIO

# Attributes every LogRecord carries. Anything else on the record came in
# through `extra=` and belongs in the JSON payload.
_RESERVED_RECORD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "relativeCreated",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "pathname",
        "filename",
        "module",
        "levelno",
        "levelname",
        "processName",
        "process",
        "threadName",
        "thread",
        "message",
        "msecs",
        "taskName",
    }
)


class JsonFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Mandatory fields:
      ts    : ISO 8601 UTC timestamp
      level : log level name
      module: logger name
      msg   : the formatted message

    Fields passed through `extra=` are merged in as-is. When the record
    carries exception info, the formatted traceback goes into `exc`.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "msg": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_"):
                entry[key] = value

        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _resolve_log_level(level_name: str) -> int:
    """Turn a level name string into the corresponding logging constant."""
    upper = level_name.upper()
    if upper not in _VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level '{level_name}'. Must be one of: {', '.join(sorted(_VALID_LOG_LEVELS))}"
        )
    return getattr(logging, upper)


PACKAGE_LOGGER = "eagerfit"


class _StdoutHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """Writes to whatever sys.stdout is at emit time, so redirected stdout is honoured."""

    def __init__(self) -> None:
        super().__init__(stream=sys.stdout)

    @property  # type: ignore[override]
    def stream(self) -> TextIO:
        return sys.stdout

    @stream.setter
    def stream(self, value: TextIO) -> None:
        pass


def _in_package(name: str) -> bool:
    return name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + ".")


def _attach_file_handler(logger: logging.Logger, log_file: Path, formatter: logging.Formatter) -> None:
    """Point the logger's single file handler at `log_file`, replacing any previous one."""
    target = str(log_file.resolve())
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            if handler.baseFilename == target:
                return
            logger.removeHandler(handler)
            handler.close()

    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(target, encoding="utf-8")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)


def _configure_handlers(logger: logging.Logger, log_file: Optional[Path]) -> None:
    formatter = JsonFormatter()
    if not any(isinstance(h, _StdoutHandler) for h in logger.handlers):
        stdout_handler = _StdoutHandler()
        stdout_handler.setFormatter(formatter)
        logger.addHandler(stdout_handler)
    if log_file is not None:
        _attach_file_handler(logger, log_file, formatter)
    logger.propagate = False


def get_logger(
    name: str,
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Create (or fetch) a structured JSON logger.

    Loggers inside the package (`eagerfit.*`) own no handlers. They propagate
    to the `eagerfit` package logger, which holds the stdout handler and the
    optional file handler and whose level they inherit unless one is given
    here. Configuring the package logger once, as bootstrap does, therefore
    routes every module's records to the same level and destinations.

    Args:
        name: Logger name, normally the calling module's __name__.
        log_level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL. None leaves
            the current level (package loggers default to INFO).
        log_file: Optional file that receives the same JSON lines as stdout.
            For package loggers it is attached to the package logger.

    Returns:
        A logging.Logger writing JSON lines.
    """
    logger = logging.getLogger(name)
    if log_level is not None:
        logger.setLevel(_resolve_log_level(log_level))

    if not _in_package(name):
        if logger.level == logging.NOTSET:
            logger.setLevel(logging.INFO)
        _configure_handlers(logger, log_file)
        return logger

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if package_logger.level == logging.NOTSET:
        package_logger.setLevel(logging.INFO)
    _configure_handlers(package_logger, log_file)

    if logger is not package_logger:
        logger.propagate = True

    return logger
