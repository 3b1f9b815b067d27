"""Logging configuration for the bot process."""

from __future__ import annotations

import logging
import os


def configure_logging(level: str | None = None) -> None:
    """Configure Python logging for the process.

    Logs are internal diagnostics; nothing logged here is ever published back to the network.
    """

    log_level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    # Pool connection churn is noisy at INFO.
    logging.getLogger("psycopg.pool").setLevel(logging.WARNING)
