"""Tests for logging setup."""

import logging

from recollect.core.logging import get_logger, setup_logging


def test_file_logging(tmp_path):
    log_file = tmp_path / "logs" / "recollect.log"
    setup_logging(level=logging.DEBUG, log_file=log_file)

    get_logger("test").debug("hello from test")
    for handler in logging.getLogger("recollect").handlers:
        handler.flush()

    text = log_file.read_text(encoding="utf-8")
    assert "recollect.test" in text
    assert "hello from test" in text


def test_setup_is_repeatable(tmp_path):
    setup_logging(log_file=tmp_path / "a.log")
    logger = setup_logging(log_file=tmp_path / "b.log")
    assert len(logger.handlers) == 2
