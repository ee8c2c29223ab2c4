"""Logging for the depsentinel CLI and engine.

Engine modules emit structlog events on ``depsentinel.engine``; parsers and
detectors use plain ``logging.getLogger(__name__)``. Both end up on one
stderr handler so that JSON results written to stdout stay parseable.

Environment:
    DEPSENTINEL_LOG_LEVEL   level for the ``depsentinel`` loggers (default: WARNING)
    DEPSENTINEL_LOG_FORMAT  console | json (default: console)
"""

from __future__ import annotations

import logging
import logging.config
import os
from typing import Any

import structlog

DEFAULT_LEVEL = "WARNING"
FORMATS = ("console", "json")

# Libraries whose chatter stays out of the analysis output
QUIET_LOGGERS = ("asyncio",)


def resolve_level(level: str | None = None) -> str:
    """Explicit *level*, else ``DEPSENTINEL_LOG_LEVEL``, else WARNING.

    Unknown level names fall back to the default instead of failing the run.
    """
    name = (level or os.environ.get("DEPSENTINEL_LOG_LEVEL") or DEFAULT_LEVEL).upper()
    return name if isinstance(logging.getLevelName(name), int) else DEFAULT_LEVEL


def resolve_format() -> str:
    name = os.environ.get("DEPSENTINEL_LOG_FORMAT", "console").lower()
    return name if name in FORMATS else "console"


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(colors=False)


def _stdlib_config(level: str, pre_chain: list, renderer: structlog.types.Processor) -> dict[str, Any]:
    loggers: dict[str, Any] = {"depsentinel": {"level": level}}
    loggers.update({name: {"level": "WARNING"} for name in QUIET_LOGGERS})
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "depsentinel": {
                "()": structlog.stdlib.ProcessorFormatter,
                "foreign_pre_chain": pre_chain,
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    renderer,
                ],
            },
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "formatter": "depsentinel",
            },
        },
        "root": {"handlers": ["stderr"], "level": level},
        "loggers": loggers,
    }


def setup_logging(level: str | None = None) -> None:
    """Route structlog and stdlib records through one stderr handler."""
    log_level = resolve_level(level)
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.config.dictConfig(_stdlib_config(log_level, pre_chain, _renderer(resolve_format())))
