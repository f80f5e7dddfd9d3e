"""Logging configuration for prlens commands.

Log records go to stderr so that tables and diffs printed on stdout stay
pipeable. The level may be given as a number or as a name taken straight from
the configuration (``logging.level: debug``).
"""

import logging
import sys
from typing import Optional, Union

DEFAULT_LOG_LEVEL = logging.WARNING
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Third-party loggers that log every HTTP request at INFO.
CHATTY_LOGGERS = ("httpx", "httpcore")

LogLevel = Union[int, str, None]


def _to_level(level: LogLevel) -> int:
    if isinstance(level, int):
        return level
    if not level:
        return DEFAULT_LOG_LEVEL
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else DEFAULT_LOG_LEVEL


def setup_logging(
    log_level: LogLevel = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = None,
) -> int:
    """Replaces the root logger's handlers with a stderr handler and an
    optional file handler.

    Args:
        log_level: A logging level or its name ('debug', 'INFO', ...).
            Unknown names and None fall back to WARNING.
        log_format: The format string for log messages.
        log_file: Optional path to a file for logging output.

    Returns:
        The numeric level that was applied.
    """
    level = _to_level(log_level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(log_format)
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
        except OSError as e:
            logging.getLogger(__name__).error(f"Cannot log to file {log_file}: {e}")

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    # Request lines from the HTTP client only show up in debug runs.
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else max(level, logging.WARNING))

    logging.getLogger(__name__).debug(
        f"Logging configured: level={logging.getLevelName(level)}, file={log_file or '-'}"
    )
    return level
