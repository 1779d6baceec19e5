"""Logging configuration built around structlog JSON logging."""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Iterable

import structlog

from .config.loader import _slugify, project_root

_LOGGING_INITIALISED = False
LOGGER_NAME = "job_sentinel"


def _default_log_dir() -> Path:
    return project_root() / "logs"


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Configure structlog + stdlib handlers and return application logger."""

    global _LOGGING_INITIALISED
    log_dir = _default_log_dir()
    error_log = log_dir / "error.log"
    sentinel_log = main_log_path()
    sources_dir = log_dir / "sources"
    sources_dir.mkdir(parents=True, exist_ok=True)
    error_log.touch(exist_ok=True)
    sentinel_log.touch(exist_ok=True)

    if not _LOGGING_INITIALISED:
        level = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "plain": {
                        "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "level": level,
                        "formatter": "plain",
                    },
                    "sentinel_file": {
                        "class": "logging.FileHandler",
                        "level": "INFO",
                        "filename": str(sentinel_log),
                        "formatter": "plain",
                    },
                    "error_file": {
                        "class": "logging.FileHandler",
                        "level": "ERROR",
                        "filename": str(error_log),
                        "formatter": "plain",
                    },
                },
                "loggers": {
                    LOGGER_NAME: {
                        "handlers": ["console", "sentinel_file", "error_file"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger(LOGGER_NAME)


def _source_log_target(source_name: str) -> tuple[str, Path]:
    slug = _slugify(source_name) or "unnamed"
    return f"{LOGGER_NAME}.source.{slug}", _default_log_dir() / "sources" / f"{slug}.log"


def source_logger(source_name: str, verbose: bool = False) -> structlog.BoundLogger:
    """Return a logger bound to a specific source and ensure its file handler exists."""

    configure_logging(verbose)
    logger_name, source_log_path = _source_log_target(source_name)
    source_log_path.parent.mkdir(parents=True, exist_ok=True)

    py_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == str(source_log_path)
        for handler in py_logger.handlers
    ):
        file_handler = logging.FileHandler(source_log_path, encoding="utf-8")
        global_logger = logging.getLogger(LOGGER_NAME)
        if global_logger.handlers:
            file_handler.setFormatter(global_logger.handlers[0].formatter)
        file_handler.setLevel(logging.INFO)
        py_logger.addHandler(file_handler)

    return structlog.get_logger(logger_name).bind(source=source_name)


def release_source_logger(source_name: str) -> None:
    """Close the per-source file handlers of a source that is no longer monitored.

    The log file stays on disk for ``log show``.
    """

    logger_name, _ = _source_log_target(source_name)
    py_logger = logging.getLogger(logger_name)
    for handler in list(py_logger.handlers):
        py_logger.removeHandler(handler)
        handler.close()


def main_log_path() -> Path:
    return _default_log_dir() / "sentinel.log"


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def available_source_logs() -> Iterable[Path]:
    sources_dir = _default_log_dir() / "sources"
    if not sources_dir.exists():
        return []
    return sorted(p for p in sources_dir.glob("*.log"))


__all__ = [
    "LOGGER_NAME",
    "available_source_logs",
    "configure_logging",
    "main_log_path",
    "release_source_logger",
    "source_logger",
    "tail_log",
]
