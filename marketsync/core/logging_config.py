# marketsync/core/logging_config.py
"""
Logging setup shared by the API, the CLI and the scheduler.

Application loggers (marketsync.*) follow LOG_LEVEL. HTTP, database and
scheduler libraries only report warnings, so per-link sync messages stay readable.
"""

import logging
from typing import Optional

from marketsync.core.config import get_settings

NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "sqlalchemy",
    "sqlalchemy.engine",
    "asyncpg",
    "apscheduler",
    "uvicorn.access",
)


def configure_logging(level: Optional[str] = None):
    log_level = (level or get_settings().LOG_LEVEL or "INFO").upper()
    numeric_level = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("marketsync").setLevel(numeric_level)

    logging.getLogger(__name__).debug(f"Logging configured at level: {log_level}")
