import logging
from typing import Optional

from ..config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    level_name = (level or settings.log_level or "INFO").upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
    logging.getLogger("app").setLevel(getattr(logging, level_name, logging.INFO))
