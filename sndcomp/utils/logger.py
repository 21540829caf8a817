"""
Logging configuration for sndcomp.
Configures the package logger; the library never touches the root logger.
"""
import logging
from functools import wraps
from time import time
from typing import IO, Optional


LOGGER_NAME = "sndcomp"


def setup_logging(level: int = logging.INFO, stream: Optional[IO[str]] = None) -> logging.Logger:
    """
    Attach a single console handler to the ``sndcomp`` logger.

    Calling it again replaces the previous handler rather than stacking a
    second one.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        stream: Where to write; stderr when None
    """
    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.handlers = []

    console_handler = logging.StreamHandler(stream)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    package_logger.addHandler(console_handler)
    package_logger.setLevel(level)
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_performance(func):
    """
    Decorator to log function execution time.

    Usage:
        @log_performance
        def compress(sound, params):
            ...
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger(func.__module__)
        start_time = time()
        try:
            result = func(*args, **kwargs)
            elapsed = time() - start_time
            logger.debug(f"{func.__name__} completed in {elapsed:.3f}s")
            return result
        except Exception as e:
            elapsed = time() - start_time
            logger.error(f"{func.__name__} failed after {elapsed:.3f}s: {e}")
            raise
    return wrapper
