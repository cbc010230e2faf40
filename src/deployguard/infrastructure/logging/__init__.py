"""Structured logging configuration -- structlog + stdlib integration.

Provides a single :func:`setup_logging` entry-point that configures
**structlog** and Python's built-in :mod:`logging` so that every log
statement flows through one processor pipeline and renderer.

Processors added to every log event:

* **timestamp** -- UTC ISO-8601
* **log level** -- ``debug`` / ``info`` / ``warning`` / ``error`` / ``critical``
* **logger name** -- the ``__name__`` of the calling module
* **operation_id** -- pulled from :mod:`structlog.contextvars` when an
  application-level operation is in flight

With ``json_output=True`` events are rendered as single-line JSON objects.
Otherwise they go through :class:`structlog.dev.ConsoleRenderer`.

Registry mutations additionally emit an ``audit`` event on the
``deployguard.audit`` logger via :func:`audit_log`.
"""
from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

AUDIT_LOGGER_NAME = "deployguard.audit"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def setup_logging(
    level: str = "info",
    json_output: bool = False,
    log_file: str | None = None,
) -> None:
    """Configure structlog with stdlib logging integration.

    Args:
        level: Log level string (``debug``, ``info``, ``warning``, ``error``,
            ``critical``).
        json_output: If ``True``, output JSON lines; otherwise human-readable
            console output.
        log_file: Optional file path for log output **in addition** to
            stderr.  File output is always JSON regardless of
            ``json_output``.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            pad_event=32,
        )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    # stderr keeps stdout free for command output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)

    handlers: list[logging.Handler] = [console_handler]

    if log_file:
        file_formatter = structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
            foreign_pre_chain=shared_processors,
        )
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)
    for handler in handlers:
        root_logger.addHandler(handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)

    structlog.get_logger(__name__).debug(
        "logging_configured",
        level=level,
        json_output=json_output,
        log_file=log_file or "none",
    )


def audit_log(action: str, **details: Any) -> None:
    """Emit one audit event for a registry, backup or policy mutation.

    Args:
        action: Short verb describing the mutation (``deploy``, ``remove``,
            ``backup``, ``restore``, ``policy_update``...).
        **details: Structured context attached to the event.
    """
    structlog.get_logger(AUDIT_LOGGER_NAME).info("audit", action=action, **details)


def bind_operation(operation_id: str, operation: str) -> None:
    """Bind the current operation to every log event in this context."""
    structlog.contextvars.bind_contextvars(operation_id=operation_id, operation=operation)


def clear_operation() -> None:
    structlog.contextvars.unbind_contextvars("operation_id", "operation")


__all__ = [
    "AUDIT_LOGGER_NAME",
    "setup_logging",
    "audit_log",
    "bind_operation",
    "clear_operation",
]
