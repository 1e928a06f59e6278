"""
Structured logging for offset-filter-lab.

Keeps the terse CLI style ([*], [!], [✓], [✗]) while providing proper log
levels, module tagging, and configurable verbosity.

Environment Variables:
    FILTERLAB_LOG_LEVEL: Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
                         Defaults to INFO if not set
"""

import logging
import os
import sys
from typing import Optional


# Custom log level for SUCCESS messages
SUCCESS = 25  # Between INFO (20) and WARNING (30)
logging.addLevelName(SUCCESS, "SUCCESS")


class FilterLabFormatter(logging.Formatter):
    """
    Formatter that maps log levels to visual prefixes.

        DEBUG    -> [·]
        INFO     -> [*]
        SUCCESS  -> [✓]
        WARNING  -> [!]
        ERROR    -> [✗]
        CRITICAL -> [✗✗]
    """

    PREFIX_MAP = {
        "DEBUG": "[·]",
        "INFO": "[*]",
        "SUCCESS": "[✓]",
        "WARNING": "[!]",
        "ERROR": "[✗]",
        "CRITICAL": "[✗✗]",
    }

    def __init__(self, include_module: bool = False):
        """
        Initialize formatter.

        Args:
            include_module: If True, include module name in output (for debugging)
        """
        self.include_module = include_module
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with visual prefix."""
        prefix = self.PREFIX_MAP.get(record.levelname, "[?]")

        if self.include_module:
            module = record.name.replace("filterlib.", "").replace("__main__", "main")
            return f"{prefix} [{module}] {record.getMessage()}"
        return f"{prefix} {record.getMessage()}"


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Configured logger instance

    Example:
        >>> from filterlib.logger import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Designing high-pass filter")
        [*] Designing high-pass filter
    """
    logger = logging.getLogger(name)

    # Only configure once (avoid duplicate handlers)
    if not logger.handlers:
        level_name = os.environ.get("FILTERLAB_LOG_LEVEL", "INFO").upper()
        level = getattr(logging, level_name, logging.INFO)

        logger.setLevel(level)

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(FilterLabFormatter(include_module=level == logging.DEBUG))

        logger.addHandler(handler)
        logger.propagate = False

    return logger


def log_success(logger: logging.Logger, message: str) -> None:
    """
    Log a success message with [✓] prefix.

    Args:
        logger: Logger instance
        message: Success message
    """
    logger.log(SUCCESS, message)


def configure_root_logger(level: Optional[str] = None) -> None:
    """
    Configure logging for the whole application.

    Called once at startup by offset_lab.py.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
               If None, uses FILTERLAB_LOG_LEVEL environment variable
    """
    if level:
        os.environ["FILTERLAB_LOG_LEVEL"] = level.upper()

    root = logging.getLogger()
    root.handlers.clear()

    get_logger("filterlab")

    # Loggers created at import time keep their level unless updated here
    level_name = os.environ.get("FILTERLAB_LOG_LEVEL", "INFO").upper()
    new_level = getattr(logging, level_name, logging.INFO)
    for name, existing in logging.root.manager.loggerDict.items():
        if not isinstance(existing, logging.Logger) or not existing.handlers:
            continue
        if name.startswith(("filterlib", "filterlab")) or name in ("validate_config", "__main__"):
            existing.setLevel(new_level)
            for handler in existing.handlers:
                handler.setLevel(new_level)
                handler.setFormatter(FilterLabFormatter(include_module=new_level == logging.DEBUG))


default_logger = get_logger("filterlab")
