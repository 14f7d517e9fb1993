from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set the level of the `campuspass` logger tree.

    Notes:
    - stdlib logging only; uvicorn (or pytest) owns the handlers.
    - `APP_LOG_LEVEL=DEBUG` shows per-session deliveries and lost transition races.
    """

    normalized = level.upper()
    root = logging.getLogger("campuspass")
    root.setLevel(normalized)
    root.propagate = True
