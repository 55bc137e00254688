from __future__ import annotations

import logging
import os
from typing import Optional

logger = logging.getLogger("chathub.server")

# Chatty per-packet loggers from the transport and HTTP stacks.
_NOISY_LOGGERS = ("httpx", "httpcore", "engineio.server", "socketio.server")


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once; level comes from ``CHATHUB_LOG_LEVEL`` (default INFO)."""
    if logger.handlers:
        return

    resolved = (level or os.getenv("CHATHUB_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, resolved, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
