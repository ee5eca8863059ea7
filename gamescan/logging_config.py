"""Structured logging for the scan service.

Console output stays human-readable; the files under ``logs/`` carry one
JSON object per line so a scan can be followed by its ``scan_id``.
"""

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from pythonjsonlogger import jsonlogger

from gamescan.config import settings

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "openai", "PIL", "apscheduler.executors.default")

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


class ScanJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding service, level and source fields."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.utcnow().isoformat() + "Z"
        log_record["service"] = "gamescan"
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["source"] = f"{record.filename}:{record.lineno}"

        # Records logged outside a scan context carry no scan_id
        scan_id = getattr(record, "scan_id", None)
        if scan_id:
            log_record["scan_id"] = scan_id


def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(base_dir: Optional[str | Path] = None) -> logging.Logger:
    """Configure the root logger.

    Args:
        base_dir: Directory that receives the logs/ folder, defaults to
                  ``settings.log_dir``.
    """
    logs_dir = Path(base_dir or settings.log_dir) / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-7s [%(name)s] %(message)s")
    )
    root.addHandler(console)

    json_formatter = ScanJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    root.addHandler(_file_handler(logs_dir / "app.log", logging.DEBUG, json_formatter))
    root.addHandler(_file_handler(logs_dir / "error.log", logging.ERROR, json_formatter))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root


class LoggerAdapter(logging.LoggerAdapter):
    """Adds the bound context (e.g. scan_id) to every record's extra fields."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str, **context) -> LoggerAdapter:
    """
    Get a logger bound to context fields.

    Args:
        name: Logger name (usually __name__)
        **context: Fields attached to every record, e.g. scan_id='...'

    Returns:
        LoggerAdapter with context
    """
    return LoggerAdapter(logging.getLogger(name), context)
