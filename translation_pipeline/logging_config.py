"""Structured logging configuration using structlog.

Modules log through ``logging.getLogger(__name__)``; structlog renders every
record (its own and stdlib's) through one ProcessorFormatter on stdout.
"""

import logging
import sys
from typing import Iterable

import structlog

from translation_pipeline import __version__
from translation_pipeline.config import Settings, get_settings

# Per-request / per-run INFO lines from these libraries drown out pipeline logs
NOISY_LOGGERS: dict[str, int] = {
    "apscheduler.executors.default": logging.WARNING,
    "apscheduler.scheduler": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "openai": logging.WARNING,
    "aiosqlite": logging.WARNING,
}

QUIET_ACCESS_PATHS = ("/health", "/metrics")


class SuppressAccessPathFilter(logging.Filter):
    """Drop uvicorn access log entries whose request path starts with one of ``paths``."""

    def __init__(self, paths: Iterable[str] = QUIET_ACCESS_PATHS):
        super().__init__()
        self.paths = tuple(paths)

    def filter(self, record: logging.LogRecord) -> bool:
        # uvicorn access args: (client_addr, method, path, http_version, status_code)
        if not isinstance(record.args, tuple) or len(record.args) < 3:
            return True
        path = record.args[2]
        return not (isinstance(path, str) and path.startswith(self.paths))


def _renderer(settings: Settings) -> structlog.types.Processor:
    if settings.app_env == "production":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_logging(settings: Settings | None = None) -> None:
    """Route stdlib and structlog output through one stdout handler."""
    settings = settings or get_settings()
    log_level = logging.DEBUG if settings.app_debug else logging.INFO

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, _renderer(settings)],
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    if not settings.app_debug:
        for name, level in NOISY_LOGGERS.items():
            logging.getLogger(name).setLevel(level)

    logging.getLogger("uvicorn.access").addFilter(SuppressAccessPathFilter())

    structlog.contextvars.bind_contextvars(
        service="translation-pipeline",
        version=__version__,
        env=settings.app_env,
    )
