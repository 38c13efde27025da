from __future__ import annotations

import itertools
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Literal, Protocol, cast

import structlog
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from structlog.processors import CallsiteParameter

if TYPE_CHECKING:
    from structlog.types import Processor

type BoundLogger = structlog.stdlib.BoundLogger
type LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"]

LOGGER_NAME = "hostpool"


class LoggingConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HOSTPOOL_LOG_",
        extra="forbid",
        frozen=True,
    )

    level: LogLevel = Field(default="WARNING")
    json_output: bool = Field(default=False)
    logger_name: str = Field(default=LOGGER_NAME)
    file_path: str | None = Field(default=None)
    max_bytes: int = Field(default=50_000_000, ge=1024)
    backup_count: int = Field(default=10, ge=0)


class FormatterStrategy(Protocol):
    def build_processors(self) -> list[Processor]: ...


class OutputStrategy(Protocol):
    def create_handler(self, config: LoggingConfig) -> logging.Handler: ...


def _shared_processors(timestamp_fmt: str, utc: bool) -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                CallsiteParameter.FILENAME,
                CallsiteParameter.LINENO,
                CallsiteParameter.MODULE,
            ]
        ),
        structlog.processors.TimeStamper(fmt=timestamp_fmt, utc=utc),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


class JsonFormatterStrategy:
    def build_processors(self) -> list[Processor]:
        return [
            structlog.stdlib.filter_by_level,
            *_shared_processors("iso", utc=True),
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]


class ConsoleFormatterStrategy:
    def build_processors(self) -> list[Processor]:
        return [
            structlog.stdlib.filter_by_level,
            *_shared_processors("%Y-%m-%d %H:%M:%S", utc=False),
            structlog.dev.ConsoleRenderer(colors=False),
        ]


class FileOutputStrategy:
    def create_handler(self, config: LoggingConfig) -> logging.Handler:
        if not config.file_path:
            raise ValueError("file_path required for FileOutputStrategy")

        log_path = Path(config.file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        handler = RotatingFileHandler(
            filename=str(log_path),
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        handler.setLevel(config.level)
        handler.setFormatter(logging.Formatter("%(message)s"))

        return handler


class StreamOutputStrategy:
    def create_handler(self, config: LoggingConfig) -> logging.Handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(config.level)
        handler.setFormatter(logging.Formatter("%(message)s"))

        return handler


class LoggerFactory:
    """Builds the default sink used when a caller supplies no logger.

    Only the stdlib logger named by ``config.logger_name`` is touched: the
    host application's root logger and global structlog configuration are
    left alone. Each owner should use its own name (see `child_logger_name`)
    so that sinks with different levels or files do not replace each other.
    """

    @staticmethod
    def create(config: LoggingConfig) -> BoundLogger:
        formatter: FormatterStrategy = JsonFormatterStrategy() if config.json_output else ConsoleFormatterStrategy()
        output: OutputStrategy = FileOutputStrategy() if config.file_path else StreamOutputStrategy()

        stdlib_logger = logging.getLogger(config.logger_name)
        LoggerFactory.release(config.logger_name)
        stdlib_logger.addHandler(output.create_handler(config))
        stdlib_logger.setLevel(config.level)
        stdlib_logger.propagate = False

        return cast(
            BoundLogger,
            structlog.wrap_logger(
                stdlib_logger,
                processors=formatter.build_processors(),
                wrapper_class=structlog.stdlib.BoundLogger,
                context_class=dict,
            ),
        )

    @staticmethod
    def release(logger_name: str) -> None:
        """Close and detach every handler installed on ``logger_name``."""
        stdlib_logger = logging.getLogger(logger_name)
        for handler in list(stdlib_logger.handlers):
            stdlib_logger.removeHandler(handler)
            handler.close()


_owner_ids = itertools.count(1)


def child_logger_name(parent: str = LOGGER_NAME) -> str:
    """Return a fresh logger name below ``parent``, unique within the process."""
    return f"{parent}.{next(_owner_ids)}"


def create_logger(config: LoggingConfig | None = None) -> BoundLogger:
    return LoggerFactory.create(config if config is not None else LoggingConfig())


def release_logger(logger_name: str) -> None:
    LoggerFactory.release(logger_name)


def get_logger(name: str | None = None) -> BoundLogger:
    return cast(BoundLogger, structlog.get_logger(name))


def adapt_logger(logger: object) -> BoundLogger:
    """Accept a caller-supplied logger.

    stdlib ``logging.Logger`` instances are wrapped so that structured
    key/value events render into their handlers; structlog loggers are
    used as-is.
    """
    if isinstance(logger, logging.Logger):
        return cast(
            BoundLogger,
            structlog.wrap_logger(
                logger,
                processors=ConsoleFormatterStrategy().build_processors(),
                wrapper_class=structlog.stdlib.BoundLogger,
                context_class=dict,
            ),
        )
    return cast(BoundLogger, logger)
