"""
Talon Pilot Logging
===================
Centralized logging for all pilot components.

Features:
- Component-specific loggers under the ``pilot`` namespace
- Console output on stderr (stdout belongs to the tool transport)
- Optional rotating log file
- Structured JSON logging option
- Timing context for stage durations

Configured through environment variables:
    TALON_PILOT_LOG_LEVEL   DEBUG/INFO/WARNING/ERROR/CRITICAL (default INFO)
    TALON_PILOT_LOG_FORMAT  "standard" or "json"
    TALON_PILOT_LOG_FILE    path of a rotating log file (disabled if unset)
    TALON_PILOT_DEBUG       "1" to force DEBUG on the console

Usage:
    from pilot_logging import get_logger

    logger = get_logger("restart")
    logger.info("Quitting Talon")
"""

import os
import sys
import json
import time
import logging
import logging.handlers
from datetime import datetime
from typing import Any, Dict, Optional

# =============================================================================
# CONFIGURATION
# =============================================================================

LOG_LEVEL = os.environ.get("TALON_PILOT_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.environ.get("TALON_PILOT_LOG_FORMAT", "standard")  # "standard" or "json"
LOG_FILE = os.environ.get("TALON_PILOT_LOG_FILE", "")
DEBUG_MODE = os.environ.get("TALON_PILOT_DEBUG", "0") == "1"

ROOT_LOGGER_NAME = "pilot"

LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


# =============================================================================
# FORMATTERS
# =============================================================================

class StandardFormatter(logging.Formatter):
    """Console formatter with optional colors"""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]
        level = record.levelname

        component = record.name
        if component.startswith(ROOT_LOGGER_NAME + '.'):
            component = component[len(ROOT_LOGGER_NAME) + 1:]

        if self.use_colors:
            color = self.COLORS.get(level, '')
            reset = self.COLORS['RESET']
            prefix = f"{color}[{timestamp}] [{level:7}] [{component}]{reset}"
        else:
            prefix = f"[{timestamp}] [{level:7}] [{component}]"

        message = record.getMessage()
        if record.exc_info:
            message += '\n' + self.formatException(record.exc_info)

        return f"{prefix} {message}"


class JSONFormatter(logging.Formatter):
    """JSON structured log formatter"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, 'extra_data'):
            log_data["data"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        return json.dumps(log_data, default=str)


class FileFormatter(logging.Formatter):
    """Plain text formatter for file output"""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        result = f"{timestamp} | {record.levelname:7} | {record.name} | {record.getMessage()}"

        if record.exc_info:
            result += '\n' + self.formatException(record.exc_info)

        return result


# =============================================================================
# LOGGER SETUP
# =============================================================================

_loggers: Dict[str, logging.Logger] = {}
_root_configured = False


def _setup_root_logger():
    """Configure the root pilot logger once"""
    global _root_configured

    if _root_configured:
        return

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG if DEBUG_MODE else LEVEL_MAP.get(LOG_LEVEL, logging.INFO))
    root.handlers.clear()
    root.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if DEBUG_MODE else LEVEL_MAP.get(LOG_LEVEL, logging.INFO))
    if LOG_FORMAT == "json":
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(StandardFormatter(use_colors=True))
    root.addHandler(console)

    if LOG_FILE:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                LOG_FILE,
                maxBytes=5 * 1024 * 1024,  # 5 MB
                backupCount=3,
                encoding='utf-8'
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(FileFormatter())
            root.addHandler(file_handler)
        except OSError as e:
            print(f"Warning: Could not set up file logging: {e}", file=sys.stderr)

    _root_configured = True


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Get a logger instance for a component.

    Args:
        name: Component name (will be prefixed with 'pilot.')

    Returns:
        Configured logger instance
    """
    _setup_root_logger()

    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + '.'):
        full_name = name
    else:
        full_name = f'{ROOT_LOGGER_NAME}.{name}'

    if full_name in _loggers:
        return _loggers[full_name]

    logger = logging.getLogger(full_name)
    _loggers[full_name] = logger
    return logger


def set_log_level(level: str):
    """Change the log level at runtime"""
    global LOG_LEVEL

    level = level.upper()
    if level not in LEVEL_MAP:
        get_logger().warning(f"Invalid log level: {level}")
        return

    LOG_LEVEL = level
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(LEVEL_MAP[level])

    for handler in root.handlers:
        if isinstance(handler, logging.StreamHandler) and handler.stream == sys.stderr:
            handler.setLevel(LEVEL_MAP[level])

    get_logger().info(f"Log level changed to {level}")


def get_log_stats() -> Dict[str, Any]:
    """Get logging configuration"""
    return {
        "log_level": LOG_LEVEL,
        "log_format": LOG_FORMAT,
        "log_file": LOG_FILE or None,
        "debug_mode": DEBUG_MODE,
        "active_loggers": list(_loggers.keys())
    }


# =============================================================================
# PERFORMANCE LOGGING
# =============================================================================

class TimingContext:
    """Context manager that times a block and logs the duration.

    The measured duration is available as ``duration_ms`` after the block
    exits, whether or not it raised.
    """

    def __init__(self, operation: str, component: str = "perf", clock=time.perf_counter):
        self.operation = operation
        self.component = component
        self.clock = clock
        self.start: Optional[float] = None
        self.duration_ms: float = 0.0

    def __enter__(self):
        self.start = self.clock()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (self.clock() - self.start) * 1000
        logger = get_logger(self.component)

        if exc_type:
            logger.error(f"{self.operation} FAILED after {self.duration_ms:.1f}ms: {exc_val}")
        else:
            logger.debug(f"{self.operation}: {self.duration_ms:.1f}ms")
