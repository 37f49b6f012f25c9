"""
Centralized logging configuration for the sheet chat backend.

Production deployments get one JSON object per line; local runs get a short
coloured line with the most useful context fields appended.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# Extra attributes promoted to top-level keys in JSON output.
CONTEXT_FIELDS = (
    "request_id",
    "session_id",
    "spreadsheet_id",
    "duration_ms",
    "status_code",
    "endpoint",
    "method",
    "model",
)


class JSONFormatter(logging.Formatter):
    """
    Structured formatter for log aggregation tools.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data, default=str)


class ColoredFormatter(logging.Formatter):
    """
    Colored console formatter for development environments.
    """

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        log_color = self.COLORS.get(record.levelname, self.RESET)

        formatted = f"{log_color}[{record.levelname}]{self.RESET} "
        formatted += f"{record.name} - {record.getMessage()}"

        extras = []
        if hasattr(record, "request_id"):
            extras.append(f"request_id={record.request_id}")
        if hasattr(record, "session_id"):
            extras.append(f"session_id={record.session_id}")
        if hasattr(record, "spreadsheet_id"):
            extras.append(f"spreadsheet={record.spreadsheet_id}")
        if hasattr(record, "duration_ms"):
            extras.append(f"duration={record.duration_ms}ms")
        if hasattr(record, "status_code"):
            extras.append(f"status={record.status_code}")

        if extras:
            formatted += f" ({', '.join(extras)})"

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


def setup_logging(
    log_level: Optional[str] = None,
    use_json: Optional[bool] = None,
    logger_name: Optional[str] = None
) -> logging.Logger:
    """
    Configure and return a logger instance.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
                   Defaults to LOG_LEVEL env var or INFO.
        use_json: Whether to use JSON formatting. Defaults to True in production.
                  Determined by ENVIRONMENT env var or LOG_FORMAT env var.
        logger_name: Name of the logger to configure. If None, configures root logger.

    Returns:
        Configured logger instance.
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, log_level, logging.INFO)

    if use_json is None:
        environment = os.getenv("ENVIRONMENT", "production").lower()
        log_format = os.getenv("LOG_FORMAT", "").lower()
        if log_format:
            use_json = log_format == "json"
        else:
            use_json = environment == "production"

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)

    # Re-running setup must not stack handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(JSONFormatter() if use_json else ColoredFormatter())
    logger.addHandler(console_handler)

    if logger_name:
        logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Name of the logger (typically __name__ from the calling module).

    Returns:
        Configured logger instance.
    """
    return setup_logging(logger_name=name)
