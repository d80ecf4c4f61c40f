"""Logging configuration for runstream.

Provides console logging with appropriate levels for client code vs
third-party transport libraries.
"""

import logging
import sys
from typing import Literal

from runstream.settings import get_settings

# Transport libraries that log every frame/request at DEBUG/INFO
NOISY_LOGGERS = [
    "httpcore",
    "httpx",
    "websockets",
    "websockets.client",
    "asyncio",
]


def suppress_noisy_loggers() -> None:
    """Suppress noisy third-party loggers.

    Call this after importing libraries that configure their own logging.
    """
    for logger_name in NOISY_LOGGERS:
        logger = logging.getLogger(logger_name)
        logger.setLevel(logging.WARNING)
        logger.handlers.clear()


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None,
) -> None:
    """Configure client logging.

    Sets up:
    - runstream logs at the configured level
    - Third-party library logs suppressed to WARNING+
    - Clean console output format on stderr

    Args:
        level: Override log level (defaults to settings.log_level)
    """
    settings = get_settings()
    log_level = level or settings.log_level

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all, filter at handler level
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, log_level))
    console_handler.setFormatter(
        logging.Formatter(
            "%(levelname)s | %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root_logger.addHandler(console_handler)

    logging.getLogger("runstream").setLevel(getattr(logging, log_level))

    suppress_noisy_loggers()
