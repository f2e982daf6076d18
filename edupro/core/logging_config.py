"""Logging setup. Modules log through ``logging.getLogger(__name__)``."""

import logging
import sys
from typing import Optional

from edupro.core.config import settings

DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())
    # Keep a single stream handler when the app factory runs more than once (tests)
    for handler in root.handlers:
        if getattr(handler, "_edupro", False):
            return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(settings.log_format or DEFAULT_FORMAT))
    handler._edupro = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    # SQL echo is controlled by the engine; keep sqlalchemy quiet otherwise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
