"""Structured logging using structlog.

Library modules log through ``logging.getLogger(__name__)`` and never
configure handlers. Hosts that want structured output call
:func:`setup_logging` once; records under the ``teletext_core`` logger are
then rendered by structlog together with any context bound through
:func:`bind_command_context`.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

ROOT_LOGGER = "teletext_core"

_SHARED_PROCESSORS: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
]


def setup_logging(*, debug: bool = False, json_output: bool = False) -> logging.Handler:
    """Configure structlog and the ``teletext_core`` stdlib logger.

    Calling it again replaces the handler installed by the previous call.

    Args:
        debug: Enable DEBUG level logging.
        json_output: Use JSON output format instead of console.

    Returns:
        The stderr handler now attached to the ``teletext_core`` logger.
    """
    level = logging.DEBUG if debug else logging.INFO

    renderer: Any
    if json_output:
        renderer = structlog.processors.JSONRenderer()
        pre_chain = [*_SHARED_PROCESSORS, structlog.processors.format_exc_info]
    else:
        renderer = structlog.dev.ConsoleRenderer()
        pre_chain = list(_SHARED_PROCESSORS)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    ))
    handler.set_name("teletext_core.structlog")

    root = logging.getLogger(ROOT_LOGGER)
    for existing in list(root.handlers):
        if existing.get_name() == handler.get_name():
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return handler


def bind_command_context(command: str, **values: Any) -> None:
    """Tag every following log event with the running CLI command."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(command=command, **values)


def get_logger(name: str = ROOT_LOGGER, **kwargs: Any) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name, **kwargs)
