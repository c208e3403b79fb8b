#!/usr/bin/env python3
"""
Logging for rulegen.

Every run writes four files under the log directory, one per ``rulegen logs
--type`` choice:

- main: human-readable pipeline progress (``rulegen.log``)
- debug: every record as JSON (``debug.log``)
- api: one JSON line per Gemini call with token usage, kept out of the
  main log (``api-calls-YYYY-MM.log``)
- generation: one summary line per run (``generation-YYYY-MM-DD.log``)
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

# Between DEBUG (10) and INFO (20); per-call API details
VERBOSE = 15
logging.addLevelName(VERBOSE, "VERBOSE")

LOG_LEVELS = ["DEBUG", "VERBOSE", "INFO", "WARNING", "ERROR"]

LOG_FILES = {
    "main": "rulegen.log",
    "api": "api-calls-{now:%Y-%m}.log",
    "generation": "generation-{now:%Y-%m-%d}.log",
    "debug": "debug.log",
}

API_LOGGER = "rulegen.api"
GENERATION_LOGGER = "rulegen.generation"


def log_file_name(log_type: str, now: Optional[datetime] = None) -> str:
    """File name of a log type; the api and generation logs are dated."""
    return LOG_FILES[log_type].format(now=now or datetime.now())


def parse_level(level: str, default: int = logging.INFO) -> int:
    if level.upper() == "VERBOSE":
        return VERBOSE
    return getattr(logging, level.upper(), default)


class JSONFormatter(logging.Formatter):
    """Formatter that outputs one JSON object per record."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if hasattr(record, 'extra_fields'):
            log_entry.update(record.extra_fields)

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class StructuredLogger:
    """Logger wrapper that accepts structured keyword fields.

    Fields end up as top-level keys in the JSON logs (debug and api).
    """

    def __init__(self, name: str, base_logger: logging.Logger):
        self.name = name
        self.logger = base_logger

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, kwargs)

    def verbose(self, message: str, **kwargs):
        self._log(VERBOSE, message, kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, kwargs)

    def _log(self, level: int, message: str, extra_fields: Dict[str, Any]):
        if not self.logger.isEnabledFor(level):
            return
        if extra_fields:
            record = self.logger.makeRecord(
                self.logger.name, level, "", 0, message, (), None
            )
            record.extra_fields = extra_fields
            self.logger.handle(record)
        else:
            self.logger.log(level, message)


class LoggingConfig:
    """Handlers for the rulegen log files and the stderr console."""

    def __init__(self, log_dir: Optional[Path] = None, log_level: str = "INFO"):
        self.log_dir = Path(log_dir) if log_dir else (Path.home() / ".rulegen" / "logs")
        self.log_level = parse_level(log_level)
        self.loggers: Dict[str, StructuredLogger] = {}

        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._setup_handlers()

    def log_path(self, log_type: str) -> Path:
        return self.log_dir / log_file_name(log_type)

    def _file_handler(self, log_type: str, level: int, formatter: logging.Formatter,
                      max_bytes: int = 0, backup_count: int = 0) -> logging.Handler:
        if max_bytes:
            handler = logging.handlers.RotatingFileHandler(
                self.log_path(log_type), maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
        else:
            handler = logging.FileHandler(self.log_path(log_type), encoding="utf-8")
        handler.setLevel(level)
        handler.setFormatter(formatter)
        return handler

    @staticmethod
    def _reset(name: str, level: int, *handlers: logging.Handler) -> logging.Logger:
        logger = logging.getLogger(name)
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()
        logger.setLevel(level)
        for handler in handlers:
            logger.addHandler(handler)
        return logger

    def _setup_handlers(self):
        # Warnings and errors only; progress goes through click.echo
        self.console_handler = logging.StreamHandler(sys.stderr)
        self.console_handler.setLevel(logging.WARNING)
        self.console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))

        main_handler = self._file_handler(
            "main", self.log_level,
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'),
            max_bytes=10*1024*1024, backup_count=5,
        )
        debug_handler = self._file_handler(
            "debug", logging.DEBUG, JSONFormatter(), max_bytes=50*1024*1024, backup_count=3
        )
        self._reset("rulegen", self.log_level, self.console_handler, main_handler, debug_handler)

        # Usage records would drown the main log, so they only reach the api file
        api_handler = self._file_handler(
            "api", logging.DEBUG, JSONFormatter(), max_bytes=20*1024*1024, backup_count=10
        )
        self._reset(API_LOGGER, logging.DEBUG, api_handler).propagate = False

        generation_handler = self._file_handler(
            "generation", logging.INFO, logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
        )
        self._reset(GENERATION_LOGGER, logging.INFO, generation_handler)

    def get_logger(self, name: str) -> StructuredLogger:
        if name not in self.loggers:
            self.loggers[name] = StructuredLogger(name, logging.getLogger(f"rulegen.{name}"))
        return self.loggers[name]


# Global logging configuration instance
_logging_config: Optional[LoggingConfig] = None


def setup_logging(log_dir: Optional[Path] = None, log_level: str = "INFO",
                  verbose_console: bool = False) -> LoggingConfig:
    """Initialize logging; ``verbose_console`` lowers the stderr level to INFO."""
    global _logging_config
    _logging_config = LoggingConfig(log_dir, log_level)

    if verbose_console:
        _logging_config.console_handler.setLevel(logging.INFO)

    return _logging_config


def _config() -> LoggingConfig:
    if _logging_config is None:
        setup_logging()
    return _logging_config


def get_logger(name: str) -> StructuredLogger:
    """Get a logger instance. Auto-initializes if not already set up."""
    return _config().get_logger(name)


def get_api_logger() -> StructuredLogger:
    return _config().get_logger("api")


def get_generation_logger() -> StructuredLogger:
    return _config().get_logger("generation")


def get_log_directory() -> Path:
    return _config().log_dir
