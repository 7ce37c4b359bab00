"""Workspace path management.

Tool-managed artifacts (event logs, default SQLite database) go under var/
(configurable via KBCHUNKER_WORKDIR), relative to the working directory.
"""

from pathlib import Path

from . import config


def workdir() -> Path:
    """Tool-managed workspace directory (default: var/)"""
    return Path(config.SETTINGS.KBCHUNKER_WORKDIR)


def logs() -> Path:
    """Log files directory (default: var/logs/)"""
    return workdir() / "logs"
