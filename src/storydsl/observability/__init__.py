"""Observability module for StoryDSL.

Provides structured logging.
"""

from storydsl.observability.logging import (
    bind_command,
    close_file_logging,
    configure_logging,
    get_logger,
)

__all__ = [
    "bind_command",
    "close_file_logging",
    "configure_logging",
    "get_logger",
]
