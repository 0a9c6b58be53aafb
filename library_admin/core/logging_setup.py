import logging
import sys

from .config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s"


def setup_logging():
    """Configure the root logger once, at application startup."""
    settings = get_settings()
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Avoid stacking handlers when the app is created more than once (tests)
    if any(getattr(h, "_library_admin", False) for h in root_logger.handlers):
        return

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    console_handler._library_admin = True
    root_logger.addHandler(console_handler)
