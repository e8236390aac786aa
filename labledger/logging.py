"""Structured logging configuration using structlog.

Everything goes to one stream (stderr unless told otherwise) so command
output on stdout stays clean for piping. Library loggers that speak
stdlib ``logging`` (httpx, httpcore) are rendered by the same processor
chain as our own structlog events.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Any

import structlog

# Transaction hashes and blob payloads are long hex strings; the console
# renderer shows them abbreviated.
_HEX_KEEP = 10

# One INFO line per JSON-RPC call is noise unless debugging.
_CHATTY_LIBRARIES = ("httpx", "httpcore")


def _abbreviate_hex(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key, value in event_dict.items():
        if isinstance(value, str) and value.startswith("0x") and len(value) > 2 * _HEX_KEEP + 2:
            event_dict[key] = f"{value[: _HEX_KEEP + 2]}...{value[-_HEX_KEEP:]}"
    return event_dict


def _pipeline(log_format: str) -> tuple[list[structlog.types.Processor], structlog.types.Processor]:
    """Processors shared by structlog and stdlib records, plus the final renderer."""
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if log_format == "json":
        return processors, structlog.processors.JSONRenderer()
    return [*processors, _abbreviate_hex], structlog.dev.ConsoleRenderer()


def _bridge_stdlib(
    out: IO[str],
    level: int,
    processors: list[structlog.types.Processor],
    renderer: structlog.types.Processor,
) -> None:
    handler = logging.StreamHandler(out)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *processors,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    library_level = level if level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "console",
    *,
    stream: IO[str] | None = None,
) -> None:
    """Configure structlog and stdlib logging for the CLI.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR).
        log_format: "console" for human-readable output, "json" for one object per line.
        stream: Where log lines go. Defaults to stderr.
    """
    out = stream or sys.stderr
    level = getattr(logging, log_level.upper(), logging.INFO)
    processors, renderer = _pipeline(log_format)

    structlog.configure(
        processors=[*processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=out),
        cache_logger_on_first_use=True,
    )
    _bridge_stdlib(out, level, processors, renderer)
