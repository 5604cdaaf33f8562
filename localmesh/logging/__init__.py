"""Centralized logging for localmesh.

Components receive a LoggerProtocol by injection and bind their own
component name. The CLI configures structlog once at startup.

Usage:
    from localmesh.logging import configure_logging, create_logger

    configure_logging(level="INFO", json_output=False)
    logger = create_logger("orchestrator", context="local")
    orchestrator = ContainerOrchestrator(runtime, settings, logger=logger)
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Generator, Optional

import structlog

from localmesh.protocols import LoggerProtocol

# Module state
_CONFIGURED = False

_current_logger: ContextVar[Optional[LoggerProtocol]] = ContextVar(
    "current_logger",
    default=None
)


class Logger:
    """LoggerProtocol implementation backed by structlog."""

    def __init__(
        self,
        base_logger: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize logger.

        Args:
            base_logger: Underlying structlog logger (created if None)
            context: Bound context fields
        """
        self._logger = base_logger or structlog.get_logger()
        self._context = context or {}

        if self._context:
            self._logger = self._logger.bind(**self._context)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._logger.debug(msg, **kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._logger.info(msg, **kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._logger.warning(msg, **kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._logger.error(msg, **kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        self._logger.exception(msg, **kwargs)

    def bind(self, **kwargs: Any) -> "Logger":
        """Create child logger with additional context."""
        return Logger(
            base_logger=structlog.get_logger(),
            context={**self._context, **kwargs},
        )


def configure_logging(
    level: str = "INFO",
    *,
    json_output: bool = False,
) -> None:
    """Configure structlog for the process.

    Called once by the CLI. Log output goes to stderr so command output on
    stdout stays machine readable.

    Args:
        level: Default log level (DEBUG, INFO, WARNING, ERROR)
        json_output: If True, output JSON; if False, console format
    """
    global _CONFIGURED

    if _CONFIGURED:
        return

    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        stream=sys.stderr,
    )

    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    if json_output:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            timestamper,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    _CONFIGURED = True


def create_logger(component: str, **context: Any) -> LoggerProtocol:
    """Create a logger for dependency injection.

    Args:
        component: Component name (e.g., "orchestrator", "reconciler")
        **context: Additional context to bind
    """
    return Logger(context={"component": component, **context})


def get_current_logger() -> LoggerProtocol:
    """Get the context-bound logger, or a default one."""
    logger = _current_logger.get()
    if logger is None:
        return Logger()
    return logger


def get_component_logger(
    component: str,
    logger: Optional[LoggerProtocol] = None,
) -> LoggerProtocol:
    """Get a logger bound to a component name.

    This is the canonical way to initialize a logger in services.

    Args:
        component: Component name (e.g., "ContainerOrchestrator")
        logger: Optional injected logger. If None, uses context logger.
    """
    base_logger = logger or get_current_logger()
    return base_logger.bind(component=component)


@contextmanager
def command_scope(command: str, **context: Any) -> Generator[LoggerProtocol, None, None]:
    """Bind command context to every log line emitted inside the scope.

    Usage:
        with command_scope("create transformation", name="tr"):
            get_current_logger().info("starting")
    """
    bound = create_logger("cli", command=command, **context)
    token = _current_logger.set(bound)
    ctx_tokens = structlog.contextvars.bind_contextvars(command=command)
    try:
        yield bound
    finally:
        structlog.contextvars.reset_contextvars(**ctx_tokens)
        _current_logger.reset(token)


__all__ = [
    "configure_logging",
    "create_logger",
    "get_component_logger",
    "Logger",
    "get_current_logger",
    "command_scope",
]
