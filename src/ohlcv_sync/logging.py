"""structlog setup for the sync job, rendered through stdlib logging."""

import contextlib
import logging
from collections.abc import Iterator

import structlog

# Third-party loggers held at WARNING; httpx logs request URLs, which carry the API key
QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite")


def setup_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Route structlog events through one stdlib handler on the root logger.

    log_format "json" emits one JSON object per event for log shippers;
    anything else uses the colored console renderer. Events carry whatever
    job context is bound via job_context().
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if log_format.lower() == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextlib.contextmanager
def job_context(symbol: str, quote_currency: str, timeframe: str) -> Iterator[None]:
    """Bind one job's identity to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(
        symbol=symbol, quote_currency=quote_currency, timeframe=timeframe
    ):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)
