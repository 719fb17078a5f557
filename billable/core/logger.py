# billable/core/logger.py
from __future__ import annotations
import logging
import sys
import structlog
from billable.core.settings import settings

# client libraries that log every request at INFO
_CHATTY = ("stripe", "httpx", "httpcore")


def _add_app(_, __, event_dict):
    event_dict.setdefault("app", settings.APP_NAME)
    return event_dict


def setup_logging() -> None:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(level=level, format="%(message)s", stream=sys.stdout)
    for name in _CHATTY:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    shared = [
        structlog.contextvars.merge_contextvars,
        _add_app,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if settings.DEV_MODE:
        renderers = [structlog.processors.ExceptionRenderer(), structlog.dev.ConsoleRenderer(colors=False)]
    else:
        renderers = [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=shared + renderers,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


def account_context(account_id):
    """Attach the billable account to every log line emitted inside the block."""
    return structlog.contextvars.bound_contextvars(account_id=str(account_id))
