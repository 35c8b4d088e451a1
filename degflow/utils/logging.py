"""
Logging utilities for DegFlow

Console output is coloured with colorlog; an optional log file receives the
same records without colour codes.
"""

import logging
import sys
import time
from functools import wraps
from pathlib import Path
from typing import Optional, Union

import colorlog

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LEVEL_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

# Third-party loggers that flood DEBUG output during plotting and fitting
NOISY_LOGGERS = ("matplotlib", "PIL", "fontTools", "numba")


def _console_handler(fmt: str, use_colors: bool) -> logging.Handler:
    if use_colors:
        handler = colorlog.StreamHandler(sys.stdout)
        handler.setFormatter(
            colorlog.ColoredFormatter(
                "%(log_color)s" + fmt, datefmt=DATE_FORMAT, log_colors=LEVEL_COLORS
            )
        )
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    return handler


def _file_handler(log_file: Union[str, Path], fmt: str) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(path)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    return handler


def setup_logging(
    level: Union[str, int] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    format_string: Optional[str] = None,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure console (and optionally file) logging for a DegFlow run

    Existing root handlers are replaced, so calling this twice does not
    duplicate output.

    Args:
        level: Level name or number applied to every handler
        log_file: Also write records to this file
        format_string: Record format; defaults to ``DEFAULT_FORMAT``
        use_colors: Colour console records by level

    Returns:
        The ``degflow`` package logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    fmt = format_string or DEFAULT_FORMAT

    handlers = [_console_handler(fmt, use_colors)]
    if log_file:
        handlers.append(_file_handler(log_file, fmt))

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        handler.setLevel(level)
        root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    package_logger = logging.getLogger("degflow")
    package_logger.setLevel(level)
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Logger in the ``degflow`` namespace; module ``__name__`` values pass through"""
    if name.startswith("degflow"):
        return logging.getLogger(name)
    return logging.getLogger(f"degflow.{name}")


def log_execution_time(func):
    """Log how long ``func`` took, at INFO on success and ERROR on failure"""

    @wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger(func.__module__)
        start = time.time()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.error(f"{func.__qualname__} failed after {time.time() - start:.2f}s: {e}")
            raise

        logger.info(f"{func.__qualname__} finished in {time.time() - start:.2f}s")
        return result

    return wrapper
