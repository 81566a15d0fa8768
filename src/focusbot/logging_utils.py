#!/usr/bin/env python3
"""
Unified logging utility for the FocusBot voice pipeline.

Provides setup_logger(name, logfile) to configure a rotating file handler and
console handler with consistent formatting. Idempotent: reuses existing handlers
if already configured for the logger.

Supports both traditional and structured JSON logging (FOCUSBOT_LOG_FORMAT=json).
The console level can be adjusted for every FocusBot logger at once with
set_console_level().
"""
from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional

_CONSOLE_LEVEL: int = logging.INFO
_CONSOLE_HANDLERS: list = []


def setup_logger(name: str, logfile: str, level: int = logging.DEBUG, structured: Optional[bool] = None) -> logging.Logger:
    """Create or return a configured logger with rotating file + console handlers.

    Args:
        name: Logger name
        logfile: Log file path
        level: Log level for the logger itself (the file handler sees everything)
        structured: Whether to use structured JSON logging (default: FOCUSBOT_LOG_FORMAT=json)
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(level)
    logger.propagate = False

    if structured is None:
        structured = os.getenv("FOCUSBOT_LOG_FORMAT", "").strip().lower() == "json"

    # Ensure logs directory exists
    try:
        logdir = os.path.dirname(logfile)
        if logdir and not os.path.exists(logdir):
            os.makedirs(logdir, exist_ok=True)
    except OSError:
        pass

    if structured:
        fmt = JSONFormatter()
    else:
        fmt = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    # File handler
    try:
        fh = RotatingFileHandler(logfile, maxBytes=2_000_000, backupCount=3)
        fh.setFormatter(fmt)
        logger.addHandler(fh)
    except OSError:
        # If file handler fails, rely on console handler only
        pass

    # Console handler
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    ch.setLevel(_CONSOLE_LEVEL)
    logger.addHandler(ch)
    _CONSOLE_HANDLERS.append(ch)

    return logger


def set_console_level(level: int) -> None:
    """Apply a console verbosity to every logger created by setup_logger."""
    global _CONSOLE_LEVEL
    _CONSOLE_LEVEL = level
    for handler in _CONSOLE_HANDLERS:
        handler.setLevel(level)


def parse_level(value: Optional[str], default: int = logging.INFO) -> int:
    """Map a level name such as "debug" or "Warning" to a logging constant."""
    if not value:
        return default
    level = logging.getLevelName(value.strip().upper())
    return level if isinstance(level, int) else default


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    _RESERVED = frozenset({
        'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
        'filename', 'module', 'exc_info', 'exc_text', 'stack_info',
        'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
        'thread', 'threadName', 'processName', 'process', 'message',
        'error_details', 'taskName',
    })

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if getattr(record, 'error_details', None):
            log_entry['error_details'] = record.error_details

        for key, value in record.__dict__.items():
            if key not in self._RESERVED:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


__all__ = [
    "setup_logger",
    "set_console_level",
    "parse_level",
    "JSONFormatter",
]
