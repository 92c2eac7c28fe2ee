from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from taskboard.config import PROJECT_ROOT, SETTINGS, Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_FILE = "taskboard.log"
QUIET_LOGGERS = ("urllib3", "sqlalchemy.engine", "alembic")


def resolve_log_dir(settings: Settings) -> Path:
    log_dir = Path(settings.log_dir)
    return log_dir if log_dir.is_absolute() else PROJECT_ROOT / log_dir


def setup_logging(settings: Settings = SETTINGS) -> Path:
    log_dir = resolve_log_dir(settings)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    file_handler = RotatingFileHandler(log_file, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=settings.log_level.upper(),
        handlers=[file_handler, console_handler],
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger(__name__).info("Logging to %s (backend: %s)", log_file, settings.backend)
    return log_file
