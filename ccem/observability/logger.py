import logging
import sys

import structlog


def setup_logging(level: str = "INFO", json_output: bool = True):
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # stderr keeps CLI report output on stdout clean
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=log_level,
    )


def get_logger(name: str = "ccem"):
    return structlog.get_logger(name)


class Diagnostics:
    """Logs a degraded-path event and forwards it to an optional callback.

    The callback receives ``(event, fields)``; it lets callers observe which
    fallback fired without parsing log output.
    """

    def __init__(self, logger, callback=None):
        self.log = logger
        self.callback = callback

    def report(self, event: str, level: str = "info", **fields):
        getattr(self.log, level)(event, **fields)
        if self.callback is not None:
            self.callback(event, fields)
