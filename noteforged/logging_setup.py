"""Logging configuration for noteforged daemon."""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Rotate at 1 MiB, keep three old files
MAX_LOG_BYTES = 1024 * 1024
LOG_BACKUP_COUNT = 3


def setup_logging(level: str, log_file: Optional[Path] = None) -> None:
    """Configure root logging for the daemon.

    Logs always go to stderr. If a log file is given, a rotating file handler
    is added as well; failure to open it falls back to console-only logging.

    Args:
        level: Logging level name (already validated by the config).
        log_file: Optional path of the log file.
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root = logging.getLogger()
    root.setLevel(level)

    # Replace handlers from any earlier call
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file is None:
        return

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT
        )
    except OSError as e:
        root.warning(f"Could not set up file logging ({e}), using console only.")
        return

    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)
