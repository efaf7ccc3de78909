"""
Logging setup shared by the API and the helper scripts.
"""
import logging
from typing import Optional

from .config.settings import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Attach a single stream handler to the package logger."""
    level_name = (level or get_settings().log_level).upper()

    package_logger = logging.getLogger('erp_pricing')
    package_logger.setLevel(getattr(logging, level_name, logging.INFO))

    # Idempotent: uvicorn --reload re-imports the app module
    if not any(getattr(h, '_erp_handler', False) for h in package_logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._erp_handler = True
        package_logger.addHandler(handler)
