"""Structured logging for composition runs.

Log lines go to stderr; stdout carries only command output (the config
artifact or a graph listing), so ``stackcomposer compose > config.json``
stays clean.
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

_FORMATS = ("json", "console")


def setup_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog once per process.

    Args:
        level: debug / info / warning / error.
        fmt:   ``json`` for machine-readable lines, ``console`` for a
               coloured human-readable renderer.
    """
    if fmt not in _FORMATS:
        raise ValueError(f"Invalid log format: {fmt}. Must be one of {_FORMATS}")
    log_level = getattr(logging, level.upper(), logging.INFO)
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if fmt == "json" else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]


@contextmanager
def composition_context(stack: str) -> Iterator[str]:
    """Tag every log line emitted inside the block with the stack and a pass id.

    Yields the generated pass id.
    """
    pass_id = uuid.uuid4().hex[:12]
    with structlog.contextvars.bound_contextvars(stack=stack, pass_id=pass_id):
        yield pass_id
