"""
Application logging: colored text for local runs, JSON lines for production.
Every record carries the id of the user whose request produced it.
"""
import logging
import sys
import os
import json
from contextvars import ContextVar
from datetime import datetime
from typing import Optional

# Set by the auth middleware for the duration of a request
request_user_id: ContextVar[Optional[str]] = ContextVar("request_user_id", default=None)

NOISY_LOGGERS = ("httpx", "httpcore", "openai", "uvicorn.access", "sqlalchemy.engine", "apscheduler")


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.user_id = request_user_id.get() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "user_id": getattr(record, "user_id", "-"),
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if hasattr(record, "extra_data"):
            entry["extra"] = record.extra_data
        return json.dumps(entry, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Text lines, level colored when attached to a terminal"""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - [%(user_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "user_id"):
            record.user_id = "-"
        if sys.stdout.isatty() and record.levelname in self.LEVEL_COLORS:
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{self.LEVEL_COLORS[record.levelname]}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(level: str = None, json_format: bool = None, log_file: str = None) -> logging.Logger:
    """
    Configure the root logger once at startup.

    Args:
        level: LOG_LEVEL when None
        json_format: LOG_JSON=true when None
        log_file: LOG_FILE when None; file output is always JSON
    """
    level = level or os.getenv("LOG_LEVEL", "INFO")
    if json_format is None:
        json_format = os.getenv("LOG_JSON", "false").lower() == "true"
    log_file = log_file or os.getenv("LOG_FILE")
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    context_filter = RequestContextFilter()
    handlers = [logging.StreamHandler(sys.stdout)]
    handlers[0].setFormatter(JSONFormatter() if json_format else ConsoleFormatter())
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.addFilter(context_filter)
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger
