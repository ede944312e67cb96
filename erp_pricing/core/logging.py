import logging

from erp_pricing.core.config import Settings

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(settings: Settings) -> None:
    """Configure root logging level and format."""

    level = settings.LOG_LEVEL.upper()
    logging.basicConfig(level=level, format=_LOG_FORMAT)
    logging.getLogger("erp_pricing").setLevel(level)
