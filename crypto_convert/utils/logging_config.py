"""
Logging setup for the price cache runner.
"""

import logging
import sys
from typing import Union

# Third-party loggers that emit a line per pooled HTTP request; at poll
# intervals of a few seconds they drown the price worker's own output.
CHATTY_LOGGERS = ("urllib3", "requests")

LOG_FORMAT = "%(asctime)s.%(msecs)03d [%(levelname)-8s] [%(name)-36s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(level: Union[int, str, None], default: int = logging.INFO) -> int:
    """
    Turns a level name ('debug', 'WARNING') or number into a logging level.

    Unknown names fall back to `default`.
    """
    if isinstance(level, int):
        return level
    if not level:
        return default
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else default


def setup_logging(level: Union[int, str, None] = logging.INFO, log_to_file: bool = False,
                  log_filename: str = "crypto_convert.log") -> logging.Logger:
    """
    Configures the root logger for the price cache.

    Args:
        level: Minimum level, as a number or a name such as 'DEBUG'.
        log_to_file: Also append records to `log_filename`.
        log_filename: Target file when `log_to_file` is set.

    Returns:
        logging.Logger: The configured root logger.
    """
    level = resolve_level(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Calling twice must not duplicate output
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))

    destination = "console"
    if log_to_file:
        try:
            file_handler = logging.FileHandler(log_filename, mode='a')
        except OSError as e:
            root_logger.error(f"Failed to open log file '{log_filename}', logging to console only: {e}")
        else:
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            destination = f"console and '{log_filename}'"

    root_logger.info(f"Logging configured. Level: {logging.getLevelName(level)}. Output to {destination}.")
    return root_logger
