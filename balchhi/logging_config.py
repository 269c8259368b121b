import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str | None = None):
    """Configure root logging once for the API process."""
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    logging.basicConfig(level=level, format=LOG_FORMAT)

    # SQL echo is noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
