"""Unit tests for logging setup."""

import logging

import colorlog
import pytest

from lumen_scrfd.utils.logger import get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:
    """Root logger configuration."""

    def test_colored_console_handler(self):
        setup_logging(level=logging.DEBUG)
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, colorlog.ColoredFormatter)

    def test_plain_console_handler(self):
        setup_logging(enable_colors=False)
        formatter = logging.getLogger().handlers[0].formatter
        assert not isinstance(formatter, colorlog.ColoredFormatter)

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "scrfd.log"
        setup_logging(log_file=log_file, enable_colors=False)

        get_logger("lumen_scrfd.test").info("hello file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert log_file.exists()
        assert "hello file" in log_file.read_text(encoding="utf-8")
        for handler in logging.getLogger().handlers:
            if isinstance(handler, logging.FileHandler):
                handler.close()

    def test_library_does_not_configure_on_import(self):
        import lumen_scrfd  # noqa: F401

        assert logging.getLogger("lumen_scrfd").handlers == []

    def test_runtime_loggers_quieted(self):
        setup_logging(level=logging.DEBUG, enable_colors=False)
        assert logging.getLogger("onnxruntime").level == logging.WARNING
