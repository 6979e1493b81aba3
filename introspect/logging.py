"""Logging utilities for introspect commands.

Console output is human-readable on a terminal and one JSON object per line
otherwise, so CI logs and pipes stay machine-readable. ``INTROSPECT_LOG_LEVEL``
and ``INTROSPECT_LOG_FORMAT`` override the defaults without CLI flags.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import IO, Any, Dict, Mapping, Optional

from pythonjsonlogger.json import JsonFormatter

_LOGGER_NAME = "introspect"

LOG_LEVEL_ENV = "INTROSPECT_LOG_LEVEL"
LOG_FORMAT_ENV = "INTROSPECT_LOG_FORMAT"
LOG_FORMATS = ("pretty", "json")

_PRETTY_FORMAT = "[introspect] %(levelname)s %(message)s"


class IntrospectJsonFormatter(JsonFormatter):
    """JSON lines carrying the level and the component that logged."""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["level"] = record.levelname
        component = record.name
        if component.startswith(f"{_LOGGER_NAME}."):
            component = component[len(_LOGGER_NAME) + 1 :]
        log_record["component"] = component


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the introspect hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def resolve_level(
    *, verbose: bool = False, quiet: bool = False, environ: Mapping[str, str] | None = None
) -> int:
    """Flags win over ``INTROSPECT_LOG_LEVEL``; unknown level names fall back to INFO."""
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    env = os.environ if environ is None else environ
    name = env.get(LOG_LEVEL_ENV, "").strip().upper()
    level = logging.getLevelName(name) if name else logging.INFO
    return level if isinstance(level, int) else logging.INFO


def resolve_format(
    log_format: str | None = None,
    *,
    stream: Optional[IO[str]] = None,
    environ: Mapping[str, str] | None = None,
) -> str:
    if log_format in LOG_FORMATS:
        return log_format  # type: ignore[return-value]
    env = os.environ if environ is None else environ
    configured = env.get(LOG_FORMAT_ENV, "").strip().lower()
    if configured in LOG_FORMATS:
        return configured
    target = stream if stream is not None else sys.stderr
    isatty = getattr(target, "isatty", None)
    return "pretty" if callable(isatty) and isatty() else "json"


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_format: str | None = None,
    log_file: Path | None = None,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """Configure the introspect logger with console output and optional file sink.

    Extraction fallbacks and rule diagnostics are emitted at DEBUG, so they only
    surface when ``verbose`` is set. ``quiet`` keeps warnings and errors only.
    """
    level = resolve_level(verbose=verbose, quiet=quiet)
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when the CLI is invoked repeatedly.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler(stream)
    stream_handler.setLevel(level)
    if resolve_format(log_format, stream=stream) == "json":
        stream_handler.setFormatter(IntrospectJsonFormatter("%(message)s"))
    else:
        stream_handler.setFormatter(logging.Formatter(_PRETTY_FORMAT))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(IntrospectJsonFormatter("%(asctime)s %(message)s"))
        logger.addHandler(file_handler)

    return logger


__all__ = [
    "IntrospectJsonFormatter",
    "LOG_FORMATS",
    "LOG_FORMAT_ENV",
    "LOG_LEVEL_ENV",
    "configure_logging",
    "get_logger",
    "resolve_format",
    "resolve_level",
]
