"""Logger hierarchy and console/file output for sitebundle."""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "sitebundle"
CONSOLE_FORMAT = "[%(component)s] %(levelname)s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(component)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a component logger, e.g. `get_logger("stages.bundle")` -> `sitebundle.stages.bundle`."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def component_name(logger_name: str) -> str:
    """`sitebundle.stages.bundle` -> `sitebundle:stages.bundle`; foreign names pass through."""
    prefix = f"{_LOGGER_NAME}."
    if logger_name.startswith(prefix):
        return f"{_LOGGER_NAME}:{logger_name[len(prefix):]}"
    return logger_name


class ComponentFormatter(logging.Formatter):
    """Formatter exposing `%(component)s`, the logger name in `sitebundle:<component>` form."""

    def format(self, record: logging.LogRecord) -> str:
        record.component = component_name(record.name)
        return super().format(record)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Send sitebundle records to stderr, tagged per component, and optionally to `log_file`.

    Verbose mode lowers the level to DEBUG, which surfaces per-file transpile
    and bundle fetch messages.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # One handler set per process, however often main() runs.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(ComponentFormatter(CONSOLE_FORMAT))
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(ComponentFormatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


__all__ = ["ComponentFormatter", "component_name", "configure_logging", "get_logger"]
