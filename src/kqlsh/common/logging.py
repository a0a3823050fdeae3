"""
Structured logging for kqlsh.

structlog writes every event to stderr, so log lines never mix with the
results rendered on stdout. While a shell command runs, its events carry
``command`` and ``command_id``; partition scan tasks inherit both because
they are bound through contextvars.

Usage:
    from kqlsh.common.logging import get_logger

    logger = get_logger(__name__, component="query")
    logger.info("Partition scan finished", topic="quotes", partition=0)

    with command_context("kql", module="kafka"):
        logger.info("Planning query")  # includes command and command_id

    with logger.timer("schema_resolution", identifier="file:quote.avsc"):
        provider.resolve_schema("file:quote.avsc")
"""

import logging
import sys
import time
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog
from structlog.types import Processor

# Routine INFO events stay hidden in an interactive session; `debug on` lowers this
DEFAULT_LOG_LEVEL = "WARNING"


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # looked up per call: stderr may be redirected after configuration
    return structlog.PrintLogger(file=sys.stderr)


def _level_number(log_level: str) -> int:
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level '{log_level}'")
    return level


def configure_logging(json_output: bool = False, log_level: str = DEFAULT_LOG_LEVEL) -> None:
    """
    Configure structlog (and the stdlib root logger used by libraries).

    Called at import with quiet defaults, again by the CLI once config is
    loaded, and by the ``debug`` command whenever the level changes.

    Args:
        json_output: Render JSON lines instead of the console format
        log_level: Minimum level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = _level_number(log_level)
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


@contextmanager
def command_context(command: str, module: Optional[str] = None) -> Iterator[str]:
    """Bind ``command`` and a fresh ``command_id`` to every event logged inside the block."""
    command_id = uuid.uuid4().hex[:12]
    context = {"command": command, "command_id": command_id}
    if module:
        context["module"] = module
    with structlog.contextvars.bound_contextvars(**context):
        yield command_id


class KqlshLogger:
    """structlog BoundLogger with a fixed ``component`` field and a timer."""

    def __init__(self, logger: structlog.BoundLogger, component: Optional[str] = None):
        self._logger = logger.bind(component=component) if component else logger

    def bind(self, **kwargs: Any) -> "KqlshLogger":
        """
        Return a logger with extra context.

        Example:
            scan_logger = logger.bind(topic="quotes", partition=2)
            scan_logger.info("Scanning partition")
        """
        return KqlshLogger(self._logger.bind(**kwargs))

    def debug(self, message: str, **kwargs: Any) -> None:
        self._logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._logger.error(message, **kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        self._logger.exception(message, **kwargs)

    @contextmanager
    def timer(self, operation: str, **context: Any) -> Iterator[None]:
        """
        Log how long the block took.

        Success is logged at DEBUG; a failure is logged at ERROR with the
        exception message and re-raised.
        """
        started = time.perf_counter()
        try:
            yield
        except Exception as e:
            self.error(
                f"{operation} failed",
                operation=operation,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                error=str(e),
                **context,
            )
            raise
        self.debug(
            f"{operation} done",
            operation=operation,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            **context,
        )


def get_logger(name: str, component: Optional[str] = None, **initial_context: Any) -> KqlshLogger:
    """
    Get a structured logger for a module.

    Args:
        name: Module name (typically __name__)
        component: Component name (e.g., "codecs", "query", "shell")
        **initial_context: Additional context to bind
    """
    base_logger = structlog.get_logger(name)
    if initial_context:
        base_logger = base_logger.bind(**initial_context)
    return KqlshLogger(base_logger, component)


configure_logging()
