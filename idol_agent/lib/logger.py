import logging
import os
from typing import Optional

# Map string log levels to logging constants
LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Attributes every LogRecord carries; anything else came in through `extra`
RESERVED_RECORD_KEYS = frozenset(
    [
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "taskName",
    ]
)


class StructuredFormatter(logging.Formatter):
    """Structured formatter that outputs human-readable logs with key filtering capability."""

    def format(self, record):
        timestamp = self.formatTime(record, self.datefmt or "%Y-%m-%d %H:%M:%S")
        level = record.levelname.ljust(8)
        logger_name = record.name.split(".")[-1][:24].ljust(24)
        message = record.getMessage()

        log_line = f"{timestamp} | {level} | {logger_name} | {message}"

        extras = []
        for key, value in record.__dict__.items():
            if key in RESERVED_RECORD_KEYS or value is None:
                continue
            if key == "task_name":
                extras.append(f"task={value}")
            elif key == "event_type":
                extras.append(f"type={value}")
            elif key == "project_id":
                extras.append(f"project={value}")
            elif isinstance(value, dict):
                extras.append(f"{key}={str(value)[:100]}")
            else:
                extras.append(f"{key}={value}")

        if extras:
            log_line += f" | {' '.join(extras)}"

        if record.exc_info:
            log_line += f"\n{self.formatException(record.exc_info)}"

        return log_line


def configure_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Configure and return a logger instance with consistent formatting and level.

    Args:
        name (Optional[str]): Logger name. If None, returns the package logger

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name if name else "idol_agent")

    # Set log level from environment variable, default to INFO if not set
    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = LOG_LEVELS.get(log_level_str, logging.INFO)
    logger.setLevel(log_level)

    # Add the structured console handler once
    if not any(
        isinstance(handler.formatter, StructuredFormatter) for handler in logger.handlers
    ):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(StructuredFormatter())
        logger.addHandler(console_handler)
        logger.propagate = False

    return logger
