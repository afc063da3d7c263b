import json
import logging
import os
import sys

import pytest
from colorlog import ColoredFormatter

from placebot.utils.logger import JsonLogFormatter, LoggerManager
from placebot.utils.task_paths import TaskPaths


@pytest.fixture
def logger_names():
    """Names created by a test; their handlers are closed afterwards."""
    names = []
    yield names
    for name in names:
        logger = LoggerManager._loggers.pop(name, None)
        if logger is None:
            continue
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)


def _flush(logger: logging.Logger) -> None:
    for handler in logger.handlers:
        handler.flush()


def test_get_logger_returns_same_instance(tmp_path, logger_names):
    """Tests that get_logger returns the same logger instance for the same name."""
    logger_names.append("test_singleton")
    log_file = str(tmp_path / "singleton.log")

    logger1 = LoggerManager.get_logger("test_singleton", log_file=log_file)
    logger2 = LoggerManager.get_logger("test_singleton", log_file=log_file)

    assert logger1 is logger2
    assert len(logger1.handlers) == 2
    assert logger1.propagate is False


def test_console_and_file_handlers(tmp_path, logger_names):
    logger_names.append("test_handlers")
    log_file = tmp_path / "handlers.log"

    logger = LoggerManager.get_logger("test_handlers", log_file=str(log_file))

    console = [
        h for h in logger.handlers
        if isinstance(h, logging.StreamHandler) and h.stream == sys.stdout
    ]
    files = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
    assert len(console) == 1
    assert isinstance(console[0].formatter, ColoredFormatter)
    assert files[0].baseFilename == os.path.abspath(log_file)


def test_json_log_output_structure(tmp_path, logger_names):
    """File logs are JSON lines with the extra_data fields merged in."""
    logger_names.append("test_json_output")
    log_file = tmp_path / "json.log"
    logger = LoggerManager.get_logger("test_json_output", log_file=str(log_file), use_json=True)

    logger.info("media.fetch.done", extra={"extra_data": {"place_id": "p-1", "photos": 3}})
    _flush(logger)

    entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])
    assert entry["message"] == "media.fetch.done"
    assert entry["logger"] == "test_json_output"
    assert entry["level"] == "INFO"
    assert entry["place_id"] == "p-1"
    assert entry["photos"] == 3


def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord(
            "x", logging.ERROR, __file__, 1, "retry.exhausted", None, sys.exc_info()
        )

    entry = json.loads(JsonLogFormatter().format(record))

    assert entry["message"] == "retry.exhausted"
    assert "RuntimeError: boom" in entry["exception"]


def test_task_paths_places_per_run_logs(tmp_path, logger_names):
    paths = TaskPaths(base_dir=tmp_path)
    logger_names.append("cli-run42")

    logger = LoggerManager.get_logger("cli", task_paths=paths, run_id="run42")
    logger.info("cli.run.start")
    _flush(logger)

    log_file = tmp_path / "logs" / "runs" / "run42" / "cli.log"
    assert log_file.exists()
    assert "cli.run.start" in log_file.read_text(encoding="utf-8")
