"""Structured logging configuration for the encounter simulator.

The simulator logs through structlog so batch runs can be read as
plain console output during development or shipped as JSON lines.
Hot paths (dice, per-action resolution) log at DEBUG; batch-level
milestones log at INFO.

Example:
    >>> from encounter_sim.core.logging import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Survey chunk complete", completed=150, total=1000)
"""

from __future__ import annotations

import logging
import sys
from typing import IO, TYPE_CHECKING, Any

import structlog
from structlog.types import Processor

from encounter_sim.core.constants import ENGINE_VERSION


if TYPE_CHECKING:
    from structlog.types import EventDict, WrappedLogger


_log_stream: IO[str] | None = None


def _add_engine_version(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    # Cached runs and replays are only comparable within one engine version.
    event_dict.setdefault("engine_version", ENGINE_VERSION)
    return event_dict


def configure_logging(
    *,
    level: str = "INFO",
    json_format: bool = False,
    log_file: str | None = None,
) -> None:
    """Configure simulator-wide logging.

    Reconfiguring closes the log file opened by a previous call.

    Args:
        level: The logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: If True, output logs as JSON lines.
        log_file: Optional path the log lines are appended to instead of stdout.

    Example:
        >>> configure_logging(level="WARNING")
        >>> configure_logging(level="DEBUG", json_format=True, log_file="batch.log")
    """
    global _log_stream  # noqa: PLW0603

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _add_engine_version,
        structlog.processors.StackInfoRenderer(),
    ]

    if json_format:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(
                colors=log_file is None,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    if _log_stream is not None:
        _log_stream.close()
        _log_stream = None
    if log_file:
        _log_stream = open(log_file, "a", encoding="utf-8")
        logger_factory: Any = structlog.WriteLoggerFactory(file=_log_stream)
    else:
        logger_factory = structlog.PrintLoggerFactory(file=sys.stdout)

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a logger for a simulator module (typically ``__name__``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables included in all subsequent logs.

    Used by the orchestrator to tag every log line of a batch with its
    batch id and base seed.

    Example:
        >>> bind_context(batch_id="a1b2", base_seed=42)
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]
