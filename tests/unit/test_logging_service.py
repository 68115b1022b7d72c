"""Tests for logging service configuration."""

import logging
from unittest.mock import patch

from condo_ledger.services.logging import get_log_level, setup_server_logging


class TestServerLogging:
    """Test server logging configuration."""

    def setup_method(self):
        """Save original handlers before each test."""
        self.root_logger = logging.getLogger()
        self.original_handlers = self.root_logger.handlers.copy()
        self.original_level = self.root_logger.level

    def teardown_method(self):
        """Restore original handlers after each test."""
        for handler in self.root_logger.handlers[:]:
            handler.close()
            self.root_logger.removeHandler(handler)
        for handler in self.original_handlers:
            self.root_logger.addHandler(handler)
        self.root_logger.setLevel(self.original_level)

    def test_creates_log_directory_and_handlers(self, tmp_path) -> None:
        log_file = tmp_path / "logs" / "server.log"

        setup_server_logging(str(log_file))

        assert log_file.parent.exists()
        assert len(self.root_logger.handlers) == 2

    def test_level_from_environment(self, tmp_path) -> None:
        with patch.dict("os.environ", {"LOG_LEVEL": "WARNING"}, clear=False):
            setup_server_logging(str(tmp_path / "server.log"))

        assert self.root_logger.level == logging.WARNING
        assert all(h.level == logging.WARNING for h in self.root_logger.handlers)

    def test_writes_to_file(self, tmp_path) -> None:
        log_file = tmp_path / "server.log"
        with patch.dict("os.environ", {"LOG_LEVEL": "INFO"}, clear=False):
            setup_server_logging(str(log_file))

        logging.getLogger("condo_ledger.test").info("Registered payment 7")
        for handler in self.root_logger.handlers:
            handler.flush()

        content = log_file.read_text()
        assert "condo_ledger.test - INFO - Registered payment 7" in content

    def test_sql_echo_toggles_engine_logger(self, tmp_path) -> None:
        engine_logger = logging.getLogger("sqlalchemy.engine")
        try:
            setup_server_logging(str(tmp_path / "server.log"), sql_echo=True)
            assert engine_logger.level == logging.INFO

            setup_server_logging(str(tmp_path / "server.log"))
            assert engine_logger.level == logging.WARNING
        finally:
            engine_logger.setLevel(logging.NOTSET)

    def test_unknown_level_falls_back_to_info(self) -> None:
        with patch.dict("os.environ", {"LOG_LEVEL": "LOUD"}, clear=False):
            assert get_log_level() == logging.INFO
