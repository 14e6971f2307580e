# tests/core/test_logging_config.py
"""Root logger setup"""
import logging
from logging.handlers import RotatingFileHandler

import pytest

from fixflow.core.logging_config import LOG_FILE_NAME, setup_logging


@pytest.fixture
def root_logger():
    """Restore the root logger's handlers and level after each test"""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def file_handlers(logger):
    return [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]


class TestSetupLogging:

    def test_writes_rotating_file(self, root_logger, tmp_path):
        setup_logging(level="debug", log_dir=str(tmp_path / "logs"), to_file=True)

        assert root_logger.level == logging.DEBUG
        assert (tmp_path / "logs" / LOG_FILE_NAME).exists()
        handler = next(h for h in file_handlers(root_logger) if h.baseFilename.startswith(str(tmp_path)))
        assert handler.maxBytes == 5 * 1024 * 1024
        assert handler.backupCount == 5

    def test_repeat_calls_do_not_stack_handlers(self, root_logger, tmp_path):
        setup_logging(log_dir=str(tmp_path), to_file=True)
        count = len(root_logger.handlers)

        setup_logging(log_dir=str(tmp_path), to_file=True)

        assert len(root_logger.handlers) == count

    def test_console_only(self, root_logger, tmp_path):
        before = len(file_handlers(root_logger))

        setup_logging(log_dir=str(tmp_path / "unused"), to_file=False)

        assert len(file_handlers(root_logger)) == before
        assert not (tmp_path / "unused").exists()

    def test_quiets_noisy_libraries(self, root_logger):
        setup_logging(to_file=False)

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("openai").level == logging.WARNING
