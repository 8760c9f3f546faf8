"""
Logging utilities for structured logging
"""

import logging
import json
import re
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Bearer tokens issued by the accounts service are long url-safe strings
_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_\-]{80,}")

_RESERVED_ATTRS = frozenset((
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'taskName',
))


def mask_token(value: Optional[str]) -> str:
    """Shorten a secret to a recognisable prefix"""
    if not value:
        return "<none>"
    if len(value) <= 8:
        return "***"
    return f"{value[:6]}...({len(value)} chars)"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, ensure_ascii=False, default=str)


class TokenMaskFilter(logging.Filter):
    """Keep access and refresh tokens out of log output"""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = _TOKEN_PATTERN.sub(lambda m: mask_token(m.group(0)), message)
        if masked != message:
            record.msg = masked
            record.args = ()
        return True


def setup_logging(log_level: str = "INFO", log_format: str = "text",
                  log_file: Optional[str] = None) -> None:
    """
    Setup logging for the recorder process.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format ("json" or "text")
        log_file: Optional log file path
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    if log_format.lower() == "json":
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(TokenMaskFilter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(TokenMaskFilter())
        root_logger.addHandler(file_handler)

    for noisy in ('spotipy', 'requests', 'urllib3', 'apscheduler', 'sqlalchemy'):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_refresh(logger: logging.Logger, success: bool, delay_s: float,
                **kwargs) -> None:
    """
    Log the result of a token refresh and when the next one is due.

    Args:
        logger: Logger instance
        success: Whether the refresh succeeded
        delay_s: Seconds until the next refresh firing
        **kwargs: Additional context
    """
    if success:
        logger.info(
            f"Access token refreshed, next refresh in {delay_s:.0f}s",
            extra={"event_type": "refresh", "success": True, "delay_s": delay_s, **kwargs}
        )
    else:
        logger.warning(
            f"Couldn't refresh access token. Trying again in {delay_s:.0f}s",
            extra={"event_type": "refresh", "success": False, "delay_s": delay_s, **kwargs}
        )


def log_poll_outcome(logger: logging.Logger, outcome: str, **kwargs) -> None:
    """
    Log the classification of a single poll.

    Args:
        logger: Logger instance
        outcome: Outcome name (NoChange, NotPlaying, Playing)
        **kwargs: Additional context
    """
    logger.debug(
        f"Poll outcome: {outcome}",
        extra={"event_type": "poll", "outcome": outcome, **kwargs}
    )


def log_error(logger: logging.Logger, task: str, error: Exception,
              context: Optional[Dict[str, Any]] = None) -> None:
    """
    Log errors caught at a task boundary.

    Args:
        logger: Logger instance
        task: Name of the task the error was caught in
        error: Exception that occurred
        context: Additional context
    """
    logger.error(
        f"Error in {task}: {error}",
        extra={
            "task": task,
            "event_type": "error",
            "error_type": type(error).__name__,
            "error_message": str(error),
            "context": context or {}
        },
        exc_info=True
    )
