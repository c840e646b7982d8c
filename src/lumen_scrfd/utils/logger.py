"""Logging configuration for applications embedding lumen-scrfd.

The library itself only creates module loggers; nothing is configured on
import. Applications call `setup_logging()` once at startup:

    from lumen_scrfd.utils.logger import setup_logging

    setup_logging(level=logging.DEBUG)
"""

import logging
import sys
from pathlib import Path

import colorlog

LEVEL_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

PLAIN_FORMAT = "%(asctime)s %(levelname)-8s %(name)s | %(message)s"
COLOR_FORMAT = "%(log_color)s%(asctime)s %(levelname)-8s%(reset)s %(name)s | %(message)s"
TIME_FORMAT = "%H:%M:%S"

# runtime libraries that are chatty at INFO
QUIET_LOGGERS = ("onnxruntime",)


def _console_handler(enable_colors: bool) -> logging.Handler:
    if not enable_colors:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt=TIME_FORMAT))
        return handler

    handler = colorlog.StreamHandler(sys.stderr)
    handler.setFormatter(
        colorlog.ColoredFormatter(
            COLOR_FORMAT, datefmt=TIME_FORMAT, log_colors=LEVEL_COLORS
        )
    )
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    return handler


def setup_logging(
    level: int = logging.INFO,
    log_file: Path | str | None = None,
    enable_colors: bool = True,
) -> None:
    """Replace the root logger's handlers with a console and optional file handler.

    Args:
        level: Level for the root logger and every handler it gets.
        log_file: Also write uncolored records to this file.
        enable_colors: Use colorlog for the console handler.
    """
    handlers = [_console_handler(enable_colors)]
    if log_file is not None:
        handlers.append(_file_handler(Path(log_file)))

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    root.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
