"""
Logging setup shared by every enrichment run.

`LoggerManager` hands out named loggers that write to stdout (colored through
`colorlog`) and to a log file (plain text or JSON lines). Structured fields
travel with a record as `extra={"extra_data": {...}}` and are merged into the
JSON output by `JsonLogFormatter`.
"""

import json
import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter


class LoggerManager:
    """
    Factory for process-wide singleton loggers.

    The same logger is returned for a given name (and optional `run_id`), so
    handlers are attached only once. Propagation is disabled so a record is
    never emitted twice by an ancestor logger.

    Log file resolution, in order:
    - an explicit `log_file`
    - `task_paths.get_log_path(run_id, name)` when a `TaskPaths` is given
    - `logs/<name>.log`
    """

    _loggers = {}
    _default_log_dir = "logs"

    @classmethod
    def get_logger(
        cls,
        name: str,
        log_file: Optional[str] = None,
        level: str = "INFO",
        use_json: bool = False,
        use_color: bool = True,
        task_paths: Optional[object] = None,
        run_id: Optional[str] = None,
    ) -> logging.Logger:
        """
        Retrieve or create a logger configured for console and file output.

        Args:
            name (str): Logger name, usually the module `__name__`.
            log_file (Optional[str]): Full path to the log file.
            level (str): Threshold such as "DEBUG" or "INFO".
            use_json (bool): Write the file log as JSON lines.
            use_color (bool): Color the console output.
            task_paths (Optional[object]): A TaskPaths used to place the file.
            run_id (Optional[str]): Run identifier for per-run log files.

        Returns:
            logging.Logger: The configured logger.
        """
        logger_key = f"{name}-{run_id}" if run_id else name
        if logger_key in cls._loggers:
            return cls._loggers[logger_key]

        logger = logging.getLogger(logger_key)
        logger.setLevel(level.upper())
        logger.propagate = False

        if not log_file and task_paths:
            log_file = task_paths.get_log_path(run_id=run_id, name=name)

        log_dir = os.path.dirname(log_file) if log_file else cls._default_log_dir
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        if not log_file:
            log_file = os.path.join(log_dir, f"{name}.log")

        logger.addHandler(cls._setup_file_handler(log_file, level, use_json))
        logger.addHandler(cls._setup_console_handler(level, use_color))

        cls._loggers[logger_key] = logger
        return logger

    @classmethod
    def reset(cls) -> None:
        """Close and forget every logger handed out so far."""
        for logger in cls._loggers.values():
            for handler in logger.handlers[:]:
                handler.close()
                logger.removeHandler(handler)
        cls._loggers.clear()

    @staticmethod
    def _setup_file_handler(
        filepath: str, level: str, use_json: bool
    ) -> logging.Handler:
        handler = logging.FileHandler(filepath, encoding="utf-8")
        handler.setLevel(level.upper())
        handler.setFormatter(LoggerManager._get_formatter(use_json=use_json, color=False))
        return handler

    @staticmethod
    def _setup_console_handler(level: str, use_color: bool) -> logging.Handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level.upper())
        handler.setFormatter(LoggerManager._get_formatter(use_json=False, color=use_color))
        return handler

    @staticmethod
    def _get_formatter(
        use_json: bool = False, color: bool = False
    ) -> logging.Formatter:
        """
        Pick the formatter for a handler.

        Args:
            use_json (bool): Return a `JsonLogFormatter`.
            color (bool): Return a colorlog formatter for terminals.

        Returns:
            logging.Formatter: A formatter instance.
        """
        if use_json:
            return JsonLogFormatter()

        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        datefmt = "%Y-%m-%d %H:%M:%S"

        if color:
            return ColoredFormatter(
                fmt="%(log_color)s" + fmt,
                datefmt=datefmt,
                log_colors={
                    "DEBUG": "cyan",
                    "INFO": "green",
                    "WARNING": "yellow",
                    "ERROR": "red",
                    "CRITICAL": "bold_red",
                },
            )
        return logging.Formatter(fmt, datefmt)


class JsonLogFormatter(logging.Formatter):
    """
    Formats records as one JSON object per line.

    Example Output:
        {
            "timestamp": "2025-05-07 13:12:01",
            "level": "INFO",
            "logger": "placebot.enrichment.media_fallback",
            "message": "media.fetch.done",
            "place_id": "8c1f...",
            "source": "wikimedia"
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": self.formatTime(record, "%Y-%m-%d %H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra_data"):
            log_record.update(record.extra_data)
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str, ensure_ascii=False)
