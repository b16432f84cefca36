"""
Workbay HTTP API for command execution in the workspace.
"""

from .server import create_app, start_server

__all__ = [
    "create_app",
    "start_server",
]
