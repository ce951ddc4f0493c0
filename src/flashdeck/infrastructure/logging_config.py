"""
Logging setup shared by the CLI and the server.

Console output goes to stderr; a rotating file under the configured log
directory receives the same records.
"""

import logging
import logging.handlers
from pathlib import Path

LOG_FORMAT = "%(levelname)s:%(name)s:%(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FILE_NAME = "flashdeck.log"


def level_for_verbosity(verbose: int) -> int:
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return logging.WARNING


def setup_logging(log_dir: Path, verbose: int = 0) -> Path:
    """
    Configure the root logger for the given verbosity and attach a file
    handler writing to log_dir/flashdeck.log.

    Safe to call more than once: a previously attached flashdeck file
    handler is replaced, not duplicated. Returns the log file path.
    """
    level = level_for_verbosity(verbose)
    root = logging.getLogger()
    root.setLevel(level)

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    for handler in list(root.handlers):
        if getattr(handler, "flashdeck_file_handler", False):
            root.removeHandler(handler)
            handler.close()

    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    file_handler.flashdeck_file_handler = True
    root.addHandler(file_handler)

    level_name = logging.getLevelName(level)
    logging.getLogger(__name__).debug(f"Logging to {log_file} at level {level_name}")
    return log_file
