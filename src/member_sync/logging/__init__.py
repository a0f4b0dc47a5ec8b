"""
Logging package for ``member_sync``.

Modules call ``get_logger(__name__)``; the ``log_*`` helpers write to the
namespace root logger.
"""

from .logger import (
    LogSettings,
    get_logger,
    list_active_loggers,
    log_error,
    log_info,
    log_warning,
)

__all__ = [
    "LogSettings",
    "get_logger",
    "list_active_loggers",
    "log_error",
    "log_info",
    "log_warning",
]
