"""
Logging configuration for Attendance Matcher.

Provides structured logging with kiosk ID context.
"""

import logging
import sys


class KioskContextFilter(logging.Filter):
    """Add kiosk context to log records."""

    def __init__(self, kiosk_id: str):
        super().__init__()
        self.kiosk_id = kiosk_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.kiosk_id = self.kiosk_id
        return True


def setup_logging(kiosk_id: str, debug: bool = False) -> None:
    """
    Configure logging for the service.

    Args:
        kiosk_id: Capture point identifier for log context
        debug: Enable debug level logging
    """
    level = logging.DEBUG if debug else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Clear existing handlers
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] [kiosk=%(kiosk_id)s] %(name)s: %(message)s'
    )
    console_handler.setFormatter(formatter)
    console_handler.addFilter(KioskContextFilter(kiosk_id))

    root_logger.addHandler(console_handler)

    # requests/urllib3 are chatty at DEBUG
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
