"""Tests for the sitebundle logger setup."""

from __future__ import annotations

import logging
from pathlib import Path

from sitebundle.logging import ComponentFormatter, component_name, configure_logging, get_logger


def test_component_name_strips_package_prefix() -> None:
    assert component_name("sitebundle.stages.bundle") == "sitebundle:stages.bundle"
    assert component_name("sitebundle") == "sitebundle"
    assert component_name("watchdog.observers") == "watchdog.observers"


def test_console_lines_are_tagged_with_component() -> None:
    record = logging.LogRecord(
        "sitebundle.stages.precompile", logging.WARNING, __file__, 1, "Failed <%s>", ("a.js",), None
    )

    line = ComponentFormatter("[%(component)s] %(levelname)s %(message)s").format(record)

    assert line == "[sitebundle:stages.precompile] WARNING Failed <a.js>"


def test_configure_logging_replaces_handlers_and_writes_log_file(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "sitebundle.log"

    configure_logging(verbose=False)
    logger = configure_logging(verbose=True, log_file=log_file)
    get_logger("watch").debug("Detected %d changed files", 2)
    for handler in logger.handlers:
        handler.flush()

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2
    assert "sitebundle:watch: Detected 2 changed files" in log_file.read_text(encoding="utf-8")
