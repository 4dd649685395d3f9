from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

import structlog
from structlog.typing import EventDict, Processor

from backend.app.config import AppSettings
from backend.app.telemetry import TELEMETRY_LOGGER_NAME

APP_LOGGER_NAME = "tubelist"
LOG_FILE_NAME = "tubelist.log"
TELEMETRY_LOG_FILE_NAME = "tubelist-telemetry.log"
# Third-party loggers that are chatty at INFO and only useful when debugging.
_QUIET_LOGGERS: tuple[str, ...] = (
    "googleapiclient.discovery",
    "googleapiclient.discovery_cache",
)


def configure_application_logging(settings: AppSettings) -> Path:
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    log_file = settings.log_dir / LOG_FILE_NAME
    telemetry_log_file = settings.log_dir / TELEMETRY_LOG_FILE_NAME
    console_level = _resolve_log_level(settings.log_level)

    _configure_structlog()

    app_logger = _isolated_logger(APP_LOGGER_NAME, level=logging.DEBUG)
    app_logger.addHandler(_console_handler(sys.stdout, level=console_level))
    app_logger.addHandler(_file_handler(log_file, level=logging.DEBUG))

    telemetry_logger = _isolated_logger(TELEMETRY_LOGGER_NAME, level=logging.INFO)
    telemetry_logger.addHandler(_file_handler(telemetry_log_file, level=logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    app_logger.info(
        "logging configured console_level=%s file_level=DEBUG path=%s telemetry_path=%s",
        logging.getLevelName(console_level),
        log_file,
        telemetry_log_file,
    )
    return log_file


def _resolve_log_level(raw_level: str) -> int:
    resolved = getattr(logging, raw_level.strip().upper(), None)
    if isinstance(resolved, int):
        return resolved
    return logging.INFO


def _configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _isolated_logger(name: str, *, level: int) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    return logger


def _console_handler(stream: TextIO, *, level: int) -> logging.Handler:
    handler = logging.StreamHandler(stream=stream)
    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_shared_pre_chain(),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.dev.ConsoleRenderer(colors=_stream_supports_color(stream)),
            ],
        )
    )
    return handler


def _file_handler(path: Path, *, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_shared_pre_chain(),
            processors=[
                _add_record_metadata,
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(sort_keys=True),
            ],
        )
    )
    return handler


def _shared_pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
    ]


def _add_record_metadata(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict["module"] = record.module
        event_dict["lineno"] = record.lineno
        event_dict["func_name"] = record.funcName
        event_dict["thread_name"] = record.threadName
    return event_dict


def _stream_supports_color(stream: TextIO) -> bool:
    try:
        return stream.isatty()
    except (AttributeError, ValueError):
        return False
