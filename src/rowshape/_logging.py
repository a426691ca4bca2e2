"""Logging for rowshape, built on structlog.

Nothing is configured on import. Applications that want to follow an
analysis call :func:`setup_logging` once. Events go to stderr, carry the
name of the emitting module and, for file-level events, the analyzed
source name.
"""

import logging
import sys
from typing import Any

import structlog

LOGGER_NAME = "rowshape"


class _StderrLoggerFactory:
    """Create loggers that write to the current ``sys.stderr``.

    Looking the stream up per logger keeps output visible when test runners
    replace stderr after :func:`setup_logging` ran.
    """

    def __call__(self, *args: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(file=sys.stderr)


def setup_logging(verbose: bool = False, *, colors: bool | None = None) -> None:
    """Route rowshape's events to stderr.

    Args:
        verbose: Show debug events: one per resolved table, view, column and
            query, and one per rejected row type candidate. Otherwise only
            warnings and errors are shown.
        colors: Force colored output on or off. Defaults to whether stderr
            is a terminal.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    if colors is None:
        colors = sys.stderr.isatty()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=colors),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=_StderrLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> Any:
    """Return a logger bound to ``name``, or to ``rowshape`` itself.

    Call it inside functions, not at module level, so that a later
    :func:`setup_logging` applies.
    """
    return structlog.get_logger().bind(logger=name or LOGGER_NAME)
