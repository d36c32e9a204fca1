"""Logging configuration shared by the Sales and Payments contexts.

Console + rotating file handlers on the stdlib side, structlog processors on
top: JSON lines in production/staging, colored console output with rich
tracebacks everywhere else. Request-scoped keys (request id, domain) are
bound through contextvars and merged into every event.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

LEVELS_BY_ENVIRONMENT = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}
JSON_ENVIRONMENTS = ("production", "staging")

_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5

# Third-party loggers that are too chatty at DEBUG/INFO.
_QUIET_LOGGERS = ("urllib3", "asyncio", "protean")


def current_environment() -> str:
    for var in ("ENV", "ENVIRONMENT", "PROTEAN_ENV"):
        value = os.getenv(var)
        if value:
            return value.lower()
    return "development"


def get_log_level() -> str:
    """LOG_LEVEL wins; otherwise the level follows the environment."""
    return os.getenv("LOG_LEVEL") or LEVELS_BY_ENVIRONMENT.get(current_environment(), "INFO")


def _rotating_handler(path: Path, level) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def _stdlib_handlers(log_dir: Path, service: str, level: str) -> list[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    return [
        console,
        _rotating_handler(log_dir / f"{service}.log", level),
        _rotating_handler(log_dir / f"{service}_error.log", logging.ERROR),
    ]


def setup_stdlib_logging(log_dir: str | Path = "logs", service: str = "storefront") -> None:
    level = get_log_level()
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = _stdlib_handlers(log_dir, service, level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _renderer(environment: str):
    if environment in JSON_ENVIRONMENTS:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=True, max_frames=2),
    )


def build_processors(environment: str | None = None) -> list:
    """The structlog processor chain for ``environment`` (defaults to the current one)."""
    environment = environment or current_environment()
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
                structlog.processors.CallsiteParameter.FUNC_NAME,
            ]
        ),
        _renderer(environment),
    ]


def setup_structlog() -> None:
    structlog.configure(
        processors=build_processors(),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(log_dir: str | Path = "logs", service: str = "storefront") -> None:
    """Configure stdlib handlers and structlog for the API or an Engine process."""
    setup_stdlib_logging(log_dir, service)
    setup_structlog()


def add_context(**kwargs: Any) -> None:
    """Bind keys that every subsequent log event in this context will carry."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
