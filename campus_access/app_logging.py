# =======================================================================================
# campus_access/app_logging.py - Logging Setup
# =======================================================================================
import logging

from .config import config


def configure_logging() -> None:
    """Configure application logging with a single stream handler."""
    logger = logging.getLogger("campus_access")
    logger.setLevel(logging.DEBUG if config.API_DEBUG else logging.INFO)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s: %(name)s: %(message)s")
    )
    logger.addHandler(handler)
    logger.propagate = False
