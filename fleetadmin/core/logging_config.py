# fleetadmin/core/logging_config.py

import logging
from typing import Optional

from fleetadmin.core import config

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _to_level(value: Optional[str]) -> int:
    if not value:
        return logging.INFO
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configura el logger raíz una sola vez.
    Si ya hay handlers (uvicorn, pytest) solo ajusta el nivel de 'fleetadmin'.
    """
    resolved = _to_level(level or config.LOG_LEVEL)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=resolved, format=_FORMAT)
    logging.getLogger("fleetadmin").setLevel(resolved)
