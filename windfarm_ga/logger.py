"""Logging setup for the wind farm GA."""

import logging
import logging.handlers
from typing import Optional


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure logging for a run.

    Calling it again replaces the handlers installed by a previous call.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path of a rotating log file
    """
    log_level = getattr(logging, str(level).upper(), logging.INFO)

    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, "_windfarm_ga", False):
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler._windfarm_ga = True
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=10 * 1024 * 1024, backupCount=5
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler._windfarm_ga = True
        root_logger.addHandler(file_handler)

    root_logger.setLevel(log_level)
