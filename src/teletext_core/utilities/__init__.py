"""Shared utilities."""

from teletext_core.utilities.logger import bind_command_context, get_logger, setup_logging

__all__ = [
    "bind_command_context",
    "get_logger",
    "setup_logging",
]
