"""
Centralized logging configuration for scripts, workers and cloud functions.
"""

import logging
import os
import sys

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

LEVELS = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}


def get_log_level_from_env() -> int:
    """
    Get log level from the LOG_LEVEL environment variable.

    Returns:
        int: Logging level constant (defaults to logging.INFO)
    """
    raw = os.environ.get('LOG_LEVEL', 'INFO')
    level = LEVELS.get(raw.strip().upper())
    if level is None:
        logging.getLogger(__name__).warning(
            "Invalid LOG_LEVEL value %r. Valid values are: %s. Defaulting to INFO.",
            raw,
            ", ".join(LEVELS),
        )
        return logging.INFO
    return level


def setup_logging(force: bool = False) -> None:
    """
    Configure the root logger with a stderr handler.

    Args:
        force: If True, replace existing handlers. Defaults to False, in which
               case an already-configured root logger only gets its level
               refreshed (Cloud Functions installs its own handler).
    """
    root_logger = logging.getLogger()
    log_level = get_log_level_from_env()

    if root_logger.handlers and not force:
        root_logger.setLevel(log_level)
        return

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    logging.getLogger(__name__).debug(
        "Logging configured with level: %s", logging.getLevelName(log_level)
    )
