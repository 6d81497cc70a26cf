"""
Logging configuration — console and optional file output for binpin.

``setup_logging`` is called once by the CLI. Handlers hang off the
``binpin`` package logger, so every ``logging.getLogger(__name__)`` in
the package inherits them and libraries embedding binpin keep their own
root configuration.

Console level precedence:
    --debug  >  --verbose  >  BINPIN_LOG_LEVEL  >  WARNING
"""

from __future__ import annotations

import logging
import sys

PACKAGE_LOGGER = "binpin"

# Console format by the most detailed level it is used for.
_CONSOLE_FORMATS: list[tuple[int, str, str | None]] = [
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s %(message)s", "%H:%M:%S"),
]
_CONSOLE_DEFAULT = "%(message)s"

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def resolve_level(verbose: bool, debug: bool, env_level: str | None) -> str:
    """Pick the console level from CLI flags and the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    return env_level or "WARNING"


def _level(name: str | None) -> int:
    value = logging.getLevelName(name.upper()) if name else None
    return value if isinstance(value, int) else logging.WARNING


def _console_formatter(level: int) -> logging.Formatter:
    for at_most, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= at_most:
            return logging.Formatter(fmt, datefmt=datefmt)
    return logging.Formatter(_CONSOLE_DEFAULT)


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> logging.Logger:
    """Configure the ``binpin`` logger and return it.

    Args:
        level: Console level name; unknown names mean WARNING.
        log_file: Also append records to this file.
        log_file_level: Level for ``log_file`` (default: ``level``).
    """
    console_level = _level(level)
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(_console_formatter(console_level))

    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.addHandler(console)
    logger.propagate = False

    effective = console_level
    if log_file:
        file_level = _level(log_file_level) if log_file_level else console_level
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
        logger.addHandler(fh)
        effective = min(effective, file_level)

    logger.setLevel(effective)
    return logger
