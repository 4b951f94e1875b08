"""Structured logging for HoraMed.

Every ``logging.getLogger(__name__)`` record is rendered by a structlog
``ProcessorFormatter``: colored text for development or JSON lines for log
aggregation. Records are tagged with the service name and, while an engine
span is active, with its trace ids and the ``item_id`` / ``user_id`` the
span was opened for. ``log_root`` adds a JSON file at
``{log_root}/horamed/{service}.log``.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path

import structlog
from opentelemetry import trace

_service_context: ContextVar[str | None] = ContextVar("horamed_service", default=None)

# Span attribute -> log key
SPAN_LOG_FIELDS = {
    "horamed.item_id": "item_id",
    "horamed.user_id": "user_id",
}

_NOISE_LOGGERS = ("asyncpg", "alembic.runtime.migration", "testcontainers")

_ZERO_TRACE_ID = "0" * 32
_ZERO_SPAN_ID = "0" * 16


def set_service_context(name: str) -> None:
    _service_context.set(name)


def get_service_context() -> str | None:
    return _service_context.get()


def add_horamed_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Tag a record with the service, the current span ids and its HoraMed ids."""
    event_dict["service"] = _service_context.get()

    span = trace.get_current_span()
    ctx = span.get_span_context()
    if not ctx.is_valid:
        event_dict["trace_id"] = _ZERO_TRACE_ID
        event_dict["span_id"] = _ZERO_SPAN_ID
        return event_dict

    event_dict["trace_id"] = format(ctx.trace_id, "032x")
    event_dict["span_id"] = format(ctx.span_id, "016x")
    # Only SDK spans expose attributes; the API's non-recording span does not
    attributes = getattr(span, "attributes", None) or {}
    for attr, key in SPAN_LOG_FIELDS.items():
        if attr in attributes:
            event_dict.setdefault(key, attributes[attr])
    return event_dict


def _pre_chain(time_fmt: str) -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=time_fmt),
        add_horamed_context,
        structlog.stdlib.ExtraAdder(),
    ]


def _formatter(
    renderer: structlog.types.Processor, time_fmt: str
) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=_pre_chain(time_fmt),
    )


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    log_root: Path | str | None = None,
    service_name: str | None = None,
) -> None:
    """Install HoraMed's handlers on the root logger, replacing existing ones.

    Parameters
    ----------
    level:
        Root log level name, case-insensitive.
    fmt:
        ``"text"`` for colored console output, ``"json"`` for JSON lines.
    log_root:
        Directory for an additional JSON log file.
    service_name:
        Tags every record and names the log file.
    """
    if service_name:
        set_service_context(service_name)

    if fmt == "json":
        time_fmt, renderer = "iso", structlog.processors.JSONRenderer()
    else:
        time_fmt, renderer = "%H:%M:%S", structlog.dev.ConsoleRenderer()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_formatter(renderer, time_fmt))
    handlers: list[logging.Handler] = [console]

    if log_root is not None:
        log_dir = Path(log_root) / "horamed"
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / f"{service_name or 'horamed'}.log")
        file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer(), "iso"))
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    root = logging.getLogger()
    # Avoid duplicate output on reconfiguration
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISE_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[*_pre_chain(time_fmt), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
