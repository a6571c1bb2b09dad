"""
Logging Configuration Module

This module provides logging setup and configuration for the Autoclave
Cycles CLI application.

A log file, when requested, always receives the library's DEBUG records
(per-request lines and probe hits), whatever the console verbosity: a slow
catalog recovery is usually diagnosed after the fact.

License: MIT
"""

import logging
import sys
from typing import Optional

LIBRARY_LOGGER = "autoclave-cycles"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

CONSOLE_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DEBUG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(funcName)s:%(lineno)d - %(message)s"
FILE_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)-8s %(name)s [%(threadName)s] %(message)s"

_logging_configured = False


def _console_level(debug: bool, quiet: bool) -> int:
    if debug:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def setup_logging(debug: bool = False, quiet: bool = False, log_file: Optional[str] = None) -> None:
    """
    Configure logging for the CLI application.

    Args:
        debug: If True, enable debug-level logging on the console
        quiet: If True, only show warnings and errors on the console
        log_file: Optional path of a file receiving full library detail
    """
    global _logging_configured

    if _logging_configured:
        return
    _logging_configured = True

    console_level = _console_level(debug, quiet)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(DEBUG_FORMAT if debug else CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    handlers: list[logging.Handler] = [console_handler]

    root_level = console_level
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        handlers.append(file_handler)
        root_level = logging.DEBUG

    logging.basicConfig(level=root_level, handlers=handlers, force=True)
    logging.getLogger(LIBRARY_LOGGER).setLevel(logging.DEBUG if debug or log_file else console_level)

    # HTTP libraries stay quiet unless the console itself is in debug mode
    http_level = logging.DEBUG if debug else logging.WARNING
    logging.getLogger("urllib3").setLevel(http_level)
    logging.getLogger("requests").setLevel(http_level)
    if not debug:
        logging.getLogger("urllib3.connectionpool").setLevel(logging.ERROR)

    logger = logging.getLogger(__name__)
    logger.debug(f"Logging configured: console={logging.getLevelName(console_level)}, debug={debug}")
    if log_file:
        logger.debug(f"Logging library detail to file: {log_file}")


__all__ = ["setup_logging"]
