"""
structlog setup shared by the API, services and startup tasks.

Events are key/value pairs: ``logger.info("Retrieved passages", count=3)``.
Console rendering in development, one JSON object per line with LOG_JSON=true.
"""
import logging
import sys

import structlog

from . import config

# Third-party loggers that are chatty at INFO
NOISY_LOGGERS = ("httpx", "urllib3", "sentence_transformers", "multipart")


def _renderer(json_logs: bool):
    if json_logs:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [
        structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )
    ]


def setup_logging(log_level: str = "INFO", json_logs: bool = False):
    """
    Configure structlog and the stdlib root logger, then return a bound logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        json_logs: JSON lines instead of console output
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            *_renderer(json_logs),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    return structlog.get_logger("docqa")


logger = setup_logging(log_level=config.LOG_LEVEL, json_logs=config.LOG_JSON)
