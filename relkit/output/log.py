"""Logging setup for relkit runs.

Library modules log through `logging.getLogger(__name__)` (all under the
`relkit` logger) and never configure handlers. The CLI calls `setup_logging`
once: warnings and above (or everything with --verbose) go to the terminal via
Rich, and every record goes to a JSON-lines file in the state directory so a
failed release can be audited after the fact.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

__all__ = ["setup_logging", "StructuredFormatter", "LOGGER_NAME"]

LOGGER_NAME = "relkit"

_EXTRA_FIELDS = ("step", "workflow", "command", "exit_code", "duration")


class StructuredFormatter(logging.Formatter):
    """JSON formatter for the run log file."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(*, verbose: bool = False, log_file: Path | None = None) -> logging.Logger:
    """Configure the `relkit` logger.

    Args:
        verbose: Show debug records on the terminal (default: warnings only).
        log_file: Optional JSON-lines file receiving every record.

    Returns:
        The configured `relkit` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    console_handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
    )
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.addHandler(console_handler)

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            logger.warning("run log disabled: %s", e)
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(StructuredFormatter())
            logger.addHandler(file_handler)

    return logger
