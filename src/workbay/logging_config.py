"""
Logging setup for Workbay.

Modules call get_logger(__name__); the CLI and server call configure_logging() once.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER_NAME = "workbay"

_configured = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger namespaced under the workbay root logger.

    Args:
        name: Usually the calling module's __name__

    Returns:
        Logger instance
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def configure_logging(level: str = "INFO") -> None:
    """
    Install a rich console handler on the workbay logger.

    Safe to call more than once; later calls only adjust the level.

    Args:
        level: Log level name
    """
    global _configured

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level.upper())

    if _configured:
        return

    handler = RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(handler)
    root.propagate = False

    _configured = True
