import logging

from app.core.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = None) -> logging.Logger:
    """Attach a console handler to the "app" logger tree."""
    logger = logging.getLogger("app")
    logger.setLevel(level or settings.LOG_LEVEL)
    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(console_handler)
    return logger
