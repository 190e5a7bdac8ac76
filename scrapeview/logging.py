import logging
import sys

import structlog

renderer = structlog.dev.ConsoleRenderer(colors=True)

processors = [
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="%H:%M:%S"),
    renderer,
]

# stdlib loggers of the HTTP stack, rendered through structlog's formatter
HTTP_LOGGERS = ("httpx", "httpcore")


def http_log_level(level: str) -> int:
    """Level for the HTTP stack's own loggers.

    httpx logs every request line at INFO, so those only show up when the
    user asked for DEBUG; otherwise they follow `level` but never go below
    WARNING.
    """
    numeric = logging.getLevelNamesMapping()[level.upper()]
    if numeric <= logging.DEBUG:
        return logging.INFO
    return max(numeric, logging.WARNING)


def _http_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=processors[:-1],
        )
    )
    return handler


def configure_logging(level: str = "INFO"):
    level = level.upper()
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level)),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
    )
    http_level = http_log_level(level)
    for name in HTTP_LOGGERS:
        logger = logging.getLogger(name)
        logger.handlers = [_http_handler()]
        logger.propagate = False
        logger.setLevel(http_level)


def get_logger(name: str | None = None):
    return structlog.get_logger(name or "scrapeview")
