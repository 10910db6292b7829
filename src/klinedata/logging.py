"""structlog setup for the loader, retriever and CLI.

Fields bound with structlog.contextvars (symbol, exchange) inside a load
follow every concurrent batch task, so per-batch events need not repeat them.
"""

import logging

import structlog

# Third-party loggers that flood DEBUG output with per-request detail
QUIET_LOGGERS = ("ccxt", "aiosqlite", "asyncio")

RENDERERS = {
    "json": structlog.processors.JSONRenderer,
    "console": structlog.dev.ConsoleRenderer,
}


def _renderer(log_format: str) -> structlog.types.Processor:
    try:
        return RENDERERS[log_format.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown log format {log_format!r}; expected one of {sorted(RENDERERS)}"
        ) from None


def setup_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Route structlog and stdlib logging through one root handler.

    Args:
        log_level: Root level name (AppSettings.log_level).
        log_format: "console" for terminals, "json" for log shipping
            (AppSettings.log_format, env LOG_FORMAT).
    """
    renderer = _renderer(log_format)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
