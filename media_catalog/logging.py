from __future__ import annotations

import logging


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # httpx logs every request URL at INFO, including the TMDB api_key query
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logging.getLogger("media_catalog")
