"""
Workbay configuration module.
"""

from .schema import (
    ExecutionConfig,
    LoggingConfig,
    ServerConfig,
    WorkbaySettings,
    get_settings,
)

__all__ = [
    "ExecutionConfig",
    "LoggingConfig",
    "ServerConfig",
    "WorkbaySettings",
    "get_settings",
]
