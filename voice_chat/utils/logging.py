"""Logging configuration and utilities."""

import sys
import json
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union
import structlog


# LogRecord attributes that are not worth repeating in JSON output
_RECORD_FIELDS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
) | {"message", "asctime"}


def setup_logging(
    debug: bool = False,
    log_file: bool = True,
    log_level: str = "INFO",
    log_format: str = "json",
    log_dir: Optional[Union[str, Path]] = None,
    file_rotation_mb: int = 10,
    file_backup_count: int = 7,
) -> Optional[Path]:
    """
    Configure structured logging for the application.

    Args:
        debug: Enable debug logging (overrides log_level)
        log_file: Whether to log to a rotating file in addition to the console
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Console log format (json, dev)
        log_dir: Directory for log files, ``./logs`` by default
        file_rotation_mb: File rotation size in MB
        file_backup_count: Number of rotated files to keep

    Returns:
        Path of the log file, or None when file logging is disabled
    """
    if debug:
        log_level = "DEBUG"
    level = getattr(logging, log_level.upper(), logging.INFO)

    dev_console = log_format == "dev" or (sys.stderr.isatty() and log_format != "json")

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if dev_console:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    if dev_console:
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    else:
        console_handler.setFormatter(JsonFormatter())
    root_logger.addHandler(console_handler)
    root_logger.setLevel(level)

    if not log_file:
        return None

    log_dir = Path(log_dir or "./logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    log_path = log_dir / f"voice_chat_{timestamp}.log"

    file_handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=file_rotation_mb * 1024 * 1024,
        backupCount=file_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    # Files are always JSON lines
    file_handler.setFormatter(JsonFormatter())
    root_logger.addHandler(file_handler)

    structlog.get_logger().info(
        "Logging configured",
        log_file=str(log_path),
        log_level=log_level,
        log_format=log_format,
    )
    return log_path


class JsonFormatter(logging.Formatter):
    """Render stdlib log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.threadName,
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_dict["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_FIELDS and not key.startswith("_")
        }
        if extra:
            log_dict["extra"] = extra

        return json.dumps(log_dict, ensure_ascii=False, default=str, separators=(",", ":"))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
