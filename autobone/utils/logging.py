"""
AutoBone Logging Utility

Provides timestamped console logging for all AutoBone components.
"""

import threading
import traceback
from datetime import datetime
from typing import Optional


# Workers log concurrently; keep each line whole
_print_lock = threading.Lock()


def log(message: str, level: str = "INFO", component: Optional[str] = None) -> None:
    """
    Print a timestamped log message.

    Args:
        message: The message to log
        level: Log level (INFO, WARN, ERROR, DEBUG)
        component: Optional component name (e.g., "AutoBone", "Recorder")
    """
    timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]  # HH:MM:SS.mmm

    if component:
        prefix = f"[{timestamp}] [{level}] [{component}]"
    else:
        prefix = f"[{timestamp}] [{level}]"

    with _print_lock:
        print(f"{prefix} {message}")


def log_info(message: str, component: Optional[str] = None) -> None:
    """Log an info message."""
    log(message, "INFO", component)


def log_warn(message: str, component: Optional[str] = None) -> None:
    """Log a warning message."""
    log(message, "WARN", component)


def log_error(
    message: str,
    component: Optional[str] = None,
    exc: Optional[BaseException] = None,
) -> None:
    """Log an error message, with the traceback of `exc` if given."""
    if exc is not None:
        details = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        message = f"{message}\n{details.rstrip()}"
    log(message, "ERROR", component)


def log_debug(message: str, component: Optional[str] = None) -> None:
    """Log a debug message."""
    log(message, "DEBUG", component)


class ComponentLogger:
    """Logger bound to a specific component."""

    def __init__(self, component: str):
        self.component = component

    def info(self, message: str) -> None:
        log_info(message, self.component)

    def warn(self, message: str) -> None:
        log_warn(message, self.component)

    def error(self, message: str, exc: Optional[BaseException] = None) -> None:
        log_error(message, self.component, exc)

    def debug(self, message: str) -> None:
        log_debug(message, self.component)


# Pre-configured loggers for common components
autobone_log = ComponentLogger("AutoBone")
recorder_log = ComponentLogger("Recorder")
export_log = ComponentLogger("Export")
