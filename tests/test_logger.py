import logging

import pytest

import logger


@pytest.fixture
def log_directory(tmp_path):
    yield tmp_path
    # Later tests should not write into a removed temporary directory.
    root = logging.getLogger(logger.ROOT_LOGGER)
    for handler in list(logger._handlers):
        root.removeHandler(handler)
        handler.close()
    logger._handlers.clear()


def _flush():
    for handler in logger._handlers:
        handler.flush()


def test_level_from_name():
    assert logger.level_from_name("debug") == logging.DEBUG
    assert logger.level_from_name("WARN") == logging.WARNING
    assert logger.level_from_name("nonsense") == logging.INFO
    assert logger.level_from_name(None) == logging.INFO


def test_log_path_uses_given_directory(tmp_path):
    assert logger.log_path(tmp_path) == tmp_path / "parut.log"


def test_setup_logging_writes_formatted_lines(log_directory):
    logger.setup_logging("debug", 1, log_directory)
    log = logger.get_logger("test")

    log.debug("debug message")
    log.warning("careful")
    _flush()

    lines = (log_directory / "parut.log").read_text(encoding="utf-8").splitlines()
    debug = next(line for line in lines if "debug message" in line)
    warn = next(line for line in lines if "careful" in line)
    assert debug.startswith("[")
    assert debug.endswith("] DEBUG: debug message")
    assert warn.endswith("] WARN: careful")


def test_setup_logging_respects_level(log_directory):
    logger.setup_logging("error", 1, log_directory)
    log = logger.get_logger("test")

    log.info("hidden")
    log.error("shown")
    _flush()

    text = (log_directory / "parut.log").read_text(encoding="utf-8")
    assert "hidden" not in text
    assert "ERROR: shown" in text


def test_setup_logging_replaces_handlers(log_directory):
    logger.setup_logging("info", 1, log_directory)
    first = list(logger._handlers)
    logger.setup_logging("info", 1, log_directory)

    root = logging.getLogger(logger.ROOT_LOGGER)
    assert len(logger._handlers) == len(first) == 2
    assert not any(h in root.handlers for h in first)
    assert root.propagate is False


def test_warning_level_name_is_restored(log_directory):
    record = logging.LogRecord("parut.test", logging.WARNING, __file__, 1, "msg", None, None)
    formatter = logger._LevelFormatter(logger.LOG_FORMAT, logger.DATE_FORMAT)

    assert "WARN: msg" in formatter.format(record)
    assert record.levelname == "WARNING"
