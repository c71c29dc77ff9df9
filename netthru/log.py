"""
Logging sink for a run.

Every line goes both to stdout and, appended, to the run's log file, with a
millisecond timestamp:

    2023-01-20 14:03:07.512 Accepted connection from 10.0.0.5:50122

The file is opened when the sink is entered and closed when it exits, so
nothing holds it between runs.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional, TextIO

from .errors import SetupError


LOGGER_NAME = "netthru"

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@contextmanager
def log_sink(logfile: Optional[str], level: int = logging.INFO,
             stream: Optional[TextIO] = None) -> Iterator[logging.Logger]:
    """
    Attach file and console handlers to the netthru logger for a run.

    Args:
        logfile: Path to append to, or None for console only
        level: Logging level for the run
        stream: Console stream (defaults to stdout)

    Yields:
        The configured logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers = [logging.StreamHandler(stream or sys.stdout)]
    if logfile:
        try:
            handlers.append(logging.FileHandler(logfile, mode="a", encoding="utf-8"))
        except OSError as exc:
            raise SetupError(f"Cannot open log file {logfile}: {exc}") from exc

    previous_level = logger.level
    logger.setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    try:
        yield logger
    finally:
        for handler in handlers:
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(previous_level)
