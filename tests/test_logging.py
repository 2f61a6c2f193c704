"""Tests for log sink configuration."""

import sys

from loguru import logger

from nanothread.utils.logging import configure_logging


def test_file_sinks_written(tmp_path):
    log_file = tmp_path / "logs" / "nanothread.log"
    try:
        configure_logging("WARNING", log_file)
        logger.debug("trace line")
        logger.error("something broke")
    finally:
        logger.remove()
        logger.add(sys.stderr)

    combined = log_file.read_text()
    assert "trace line" in combined
    assert "something broke" in combined
    errors = list((tmp_path / "logs" / "error").glob("error-*.log"))
    assert len(errors) == 1
    assert "trace line" not in errors[0].read_text()
