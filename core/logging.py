"""
Structured logging configuration.

Provides JSON-formatted logs for hosts that run the engine standalone
(batch jobs, notebooks, workers). Importing the engine never touches the
root logger; the host opts in by calling setup_logging().
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from core.config import Settings, settings as default_settings


ENGINE_LOGGER_NAME = "analytics"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields if present
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data)


def setup_logging(config: Optional[Settings] = None) -> logging.Logger:
    """
    Configure application-wide logging.

    Uses JSON format in production, text format in development.
    """
    config = config or default_settings
    log_level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)

    # Create formatter
    if config.LOG_FORMAT == "json" or config.ENVIRONMENT == "production":
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers
    root_logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Per-iteration diagnostics are only useful when explicitly debugging
    logging.getLogger(ENGINE_LOGGER_NAME).setLevel(
        logging.DEBUG if log_level <= logging.DEBUG else logging.INFO
    )

    return root_logger


def get_engine_logger(name: str = ENGINE_LOGGER_NAME) -> logging.Logger:
    """
    Return a logger under the engine namespace.

    The namespace carries a NullHandler, so components stay silent
    unless the host configures logging.
    """
    base = logging.getLogger(ENGINE_LOGGER_NAME)
    if not any(isinstance(h, logging.NullHandler) for h in base.handlers):
        base.addHandler(logging.NullHandler())
    if name == ENGINE_LOGGER_NAME or name.startswith(ENGINE_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ENGINE_LOGGER_NAME}.{name}")
