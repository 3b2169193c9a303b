from __future__ import annotations

import logging
import sys
from typing import Any

import orjson
import structlog


def _processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.dict_tracebacks,
        # orjson.dumps returns bytes, hence the bytes logger factory below
        structlog.processors.JSONRenderer(serializer=orjson.dumps),
    ]


def configure_logging(*, level: str = "INFO") -> None:
    """
    One JSON object per line on stdout, for structlog and stdlib loggers alike.

    create_app() calls this; scripts embedding the engine may call it themselves.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    structlog.configure(
        processors=_processors(),
        context_class=dict,
        logger_factory=structlog.BytesLoggerFactory(file=sys.stdout.buffer),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )

    # uvicorn / fastapi
    logging.basicConfig(level=log_level, format="%(message)s", stream=sys.stdout)


def bind_context(**values: Any) -> None:
    """
    Attach key/values (session_id, simulation) to every log line on this context.
    """
    structlog.contextvars.bind_contextvars(**values)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
