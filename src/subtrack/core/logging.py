"""structlog setup for subtrack.

Existing ``logging.getLogger(__name__)`` call sites are rendered through
structlog's ``ProcessorFormatter``, so every record picks up the bound
context: the app name, whichever subscription a write path is handling, and
the current OTel trace/span ids.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import structlog
from opentelemetry import trace

# uvicorn logs one INFO line per request.
_QUIET_LOGGERS = ("uvicorn.access",)

_NULL_TRACE_ID = "0" * 32
_NULL_SPAN_ID = "0" * 16


def add_otel_ids(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Stamp ``trace_id``/``span_id`` from the active span (zeros outside one)."""
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    else:
        event_dict["trace_id"] = _NULL_TRACE_ID
        event_dict["span_id"] = _NULL_SPAN_ID
    return event_dict


@contextmanager
def subscription_context(subscription_id: object, **fields: object) -> Iterator[None]:
    """Bind ``subscription_id`` (and any extra *fields*) to records logged inside."""
    with structlog.contextvars.bound_contextvars(
        subscription_id=str(subscription_id), **fields
    ):
        yield


def _shared_processors(timestamp_fmt: str) -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=timestamp_fmt),
        add_otel_ids,
        structlog.stdlib.ExtraAdder(),
    ]


def _formatter(
    renderer: structlog.types.Processor,
    pre_chain: list[structlog.types.Processor],
) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=pre_chain,
    )


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    log_root: Path | None = None,
    app_name: str = "subtrack",
) -> None:
    """Install structlog rendering on the root logger.

    Parameters
    ----------
    level:
        Root log level name.
    fmt:
        ``"text"`` for the coloured console renderer, ``"json"`` for JSON lines.
    log_root:
        When set, every record is also written as JSON to
        ``{log_root}/{app_name}.log``.
    app_name:
        Bound as ``app`` on every record.
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(app=app_name)

    if fmt == "json":
        pre_chain = _shared_processors("iso")
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        pre_chain = _shared_processors("%H:%M:%S")
        renderer = structlog.dev.ConsoleRenderer()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_formatter(renderer, pre_chain))

    root = logging.getLogger()
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.addHandler(console)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if log_root is not None:
        log_root = Path(log_root)
        log_root.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_root / f"{app_name}.log", encoding="utf-8")
        file_handler.setFormatter(
            _formatter(structlog.processors.JSONRenderer(), _shared_processors("iso"))
        )
        root.addHandler(file_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
