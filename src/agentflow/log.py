"""structlog configuration for agentflow.

Library modules only call ``structlog.get_logger()``; hosts and the CLI call
:func:`configure_logging` once at startup.
"""

from __future__ import annotations

import logging

import structlog
from structlog.typing import Processor


def configure_logging(level: int | str = logging.INFO, json_output: bool = False) -> None:
    """Configure structlog rendering and level filtering.

    Args:
        level: Minimum level to emit, as a ``logging`` constant or name.
        json_output: Render one JSON object per line instead of the console format.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
