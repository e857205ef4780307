"""
Logging configuration for the SaleReady backend
Structured logging with rotation, plus redacting helpers for request payloads
"""
import logging
import logging.handlers
import json
import sys
from pathlib import Path
from datetime import datetime
from typing import Any, Dict, Optional

SENSITIVE_KEYS = {"api_key", "key", "password", "token", "secret", "authorization"}


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_data["extra"] = record.extra_data

        if hasattr(record, "request_id"):
            log_data["request_id"] = record.request_id
        if hasattr(record, "user_id"):
            log_data["user_id"] = record.user_id

        return json.dumps(log_data, default=str)


class DetailedFormatter(logging.Formatter):
    """Detailed human-readable formatter"""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s | %(levelname)-8s | %(name)-20s | %(funcName)-15s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )


def redact(data: Any) -> Any:
    """Return a copy of data with credential-like keys masked."""
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if str(k).lower() in SENSITIVE_KEYS else redact(v)
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [redact(item) for item in data]
    return data


def log_event(
    logger: logging.Logger,
    area: str,
    message: str,
    data: Optional[Any] = None,
    level: int = logging.INFO,
) -> None:
    """Log "[area] message" and attach a redacted copy of data when given."""
    logger.log(level, f"[{area}] {message}")
    if data is None:
        return
    if isinstance(data, BaseException):
        logger.log(level, f"[{area}] Data (Error): {type(data).__name__}: {data}")
        return
    try:
        logger.log(level, f"[{area}] Data: {json.dumps(redact(data), default=str)}")
    except (TypeError, ValueError):
        logger.log(level, f"[{area}] Couldn't serialize data: {data!r}")


def setup_logging(
    log_dir: Optional[Path] = None,
    level: str = "INFO",
    enable_json: bool = False,
    enable_console: bool = True
) -> logging.Logger:
    """
    Setup logging for the backend

    Args:
        log_dir: Directory to store log files, None disables file logging
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_json: Enable JSON formatted logs
        enable_console: Enable console output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    formatter = JSONFormatter() if enable_json else DetailedFormatter()

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)

        # File handler with rotation (10MB, keep 5 backups)
        log_file = log_dir / "backend.log"
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)

        error_file = log_dir / "backend_errors.log"
        error_handler = logging.handlers.RotatingFileHandler(
            error_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=10,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)

        root_logger.addHandler(file_handler)
        root_logger.addHandler(error_handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(root_logger.level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    logger = logging.getLogger("saleready")
    logger.info(f"Logging configured - Level: {level}, Directory: {log_dir or 'console only'}")
    return logger
